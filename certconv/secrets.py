# certconv/secrets.py
"""
Loading passwords from exactly one source (inline value, stdin or file) and
nudging users away from inline values.

Standard input can be read once per process, so it is modelled as an explicit
`StdinSource` handed around by the caller rather than touched implicitly.
"""
from __future__ import annotations

import logging
import sys
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Optional, Set, TextIO

from .errors import IOFailure, UsageError

log = logging.getLogger(__name__)


def is_terminal(stream) -> bool:
    if stream is None:
        return False
    try:
        return bool(stream.isatty())
    except (AttributeError, ValueError, OSError):
        return False


class Provenance(str, Enum):
    INLINE = "inline"
    STDIN = "stdin"
    FILE = "file"


@dataclass(frozen=True)
class SecretSpec:
    """Candidate sources for one secret. `name` is the flag identity, e.g. "password"."""

    name: str
    value: str = ""
    from_stdin: bool = False
    file: str = ""

    @property
    def flags(self) -> tuple[str, str, str]:
        return (self.name, f"{self.name}-stdin", f"{self.name}-file")

    @property
    def reads_stdin(self) -> bool:
        return self.from_stdin or self.file.strip() == "-"

    @property
    def inline(self) -> bool:
        return bool(self.value.strip()) and not self.from_stdin and not self.file.strip()

    def specified(self) -> int:
        return sum((bool(self.value.strip()), self.from_stdin, bool(self.file.strip())))

    def __repr__(self) -> str:
        return (
            f"SecretSpec(name={self.name!r}, value={'***' if self.value else ''!r}, "
            f"from_stdin={self.from_stdin!r}, file={self.file!r})"
        )


@dataclass
class Secret:
    value: str
    provenance: Provenance
    consumed: bool = False

    def __repr__(self) -> str:
        return f"Secret(provenance={self.provenance.value}, consumed={self.consumed})"


class StdinSource:
    """Single-use wrapper around the process standard input."""

    def __init__(
        self,
        stream: Optional[TextIO] = None,
        terminal_check: Callable[[object], bool] = is_terminal,
    ) -> None:
        self._stream = stream
        self._terminal_check = terminal_check
        self.consumed = False

    @property
    def stream(self) -> TextIO:
        return self._stream if self._stream is not None else sys.stdin

    def read(self, flag: str) -> str:
        if self.consumed:
            raise UsageError(f"--{flag}: standard input was already consumed by another secret")
        # Gate on the real stdin being a TTY to avoid hanging on an interactive prompt.
        if self._terminal_check(self.stream):
            raise UsageError(f"--{flag} requires stdin to be piped/redirected")
        self.consumed = True
        try:
            data = self.stream.read()
        except OSError as exc:
            raise IOFailure(f"read --{flag} from stdin", exc) from exc
        return _trim_newlines(data)


def _trim_newlines(s: str) -> str:
    # Only trailing CR/LF: passwords may legitimately contain spaces.
    return s.rstrip("\r\n")


def check_sources(spec: SecretSpec) -> None:
    if spec.specified() > 1:
        a, b, c = spec.flags
        raise UsageError(f"use only one of --{a}, --{b}, or --{c}")


def reject_shared_stdin(*specs: SecretSpec) -> None:
    readers = [s for s in specs if s.reads_stdin]
    if len(readers) > 1:
        names = ", ".join(f"--{s.name}" for s in readers)
        raise UsageError(
            f"only one secret may be read from stdin ({names}); "
            "use a --*-file option for the others"
        )


def load_secret(spec: SecretSpec, stdin: Optional[StdinSource] = None) -> Secret:
    check_sources(spec)

    if spec.from_stdin:
        return _from_stdin(spec.flags[1], stdin)

    path = spec.file.strip()
    if path == "-":
        return _from_stdin(spec.flags[2], stdin)
    if path:
        try:
            raw = Path(path).read_text(encoding="utf-8")
        except OSError as exc:
            raise IOFailure(f"read --{spec.flags[2]}", exc) from exc
        log.debug("Loaded --%s from file", spec.flags[2])
        return Secret(_trim_newlines(raw), Provenance.FILE)

    return Secret(spec.value, Provenance.INLINE)


def _from_stdin(flag: str, stdin: Optional[StdinSource]) -> Secret:
    source = stdin if stdin is not None else StdinSource()
    value = source.read(flag)
    log.debug("Loaded --%s from stdin", flag)
    return Secret(value, Provenance.STDIN, consumed=True)


@dataclass
class InlineSecretWarner:
    """Prints the inline-password advisory at most once per flag, on terminals only."""

    stream: Optional[TextIO] = None
    enabled: bool = True
    terminal_check: Callable[[object], bool] = is_terminal
    warned: Set[str] = field(default_factory=set)

    def warn(self, flag: str) -> bool:
        flag = flag.strip()
        if not flag or not self.enabled:
            return False
        out = self.stream if self.stream is not None else sys.stderr
        if not self.terminal_check(out):
            return False
        if flag in self.warned:
            return False
        self.warned.add(flag)
        out.write(
            f"Warning: --{flag} may leak secrets via shell history. "
            f"Prefer --{flag}-stdin or --{flag}-file.\n"
        )
        return True

    def warn_if_inline(self, spec: SecretSpec) -> bool:
        if spec.inline:
            return self.warn(spec.name)
        return False
