# certconv/executor.py
"""
Subprocess access to the openssl toolchain.

Passwords never travel in argv or the environment. Callers put `SecretArg`
placeholders in argv; the executor creates one carrier per secret right before
the call (an anonymous pipe inherited by the child on POSIX, fed once the child
has started; a private temp file elsewhere), swaps the placeholder for an
opaque reference (`fd:N` or `file:PATH`) and tears the carrier down once the
child has exited.
"""
from __future__ import annotations

import contextlib
import logging
import os
import subprocess
import tempfile
import threading
import time
from dataclasses import dataclass
from typing import List, Optional, Protocol, Sequence, Tuple, Union

from .errors import Cancelled, IOFailure, ToolchainFailure

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class SecretArg:
    """argv placeholder for the secret at position `index`."""

    index: int = 0

    def __str__(self) -> str:
        return f"<secret:{self.index}>"


Arg = Union[str, SecretArg]


@dataclass
class ExecResult:
    stdout: bytes
    stderr: bytes
    returncode: int

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def out(self) -> str:
        return self.stdout.decode("utf-8", errors="replace")

    @property
    def err(self) -> str:
        return self.stderr.decode("utf-8", errors="replace")


class Executor(Protocol):
    def run(
        self,
        args: Sequence[str],
        timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None,
    ) -> ExecResult: ...

    def run_with_secrets(
        self,
        args: Sequence[Arg],
        secrets: Sequence[str],
        timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None,
    ) -> ExecResult: ...


def _secret_bytes(value: str) -> bytes:
    # openssl reads one line from fd:/file: sources
    data = value.encode("utf-8")
    if not data.endswith(b"\n"):
        data += b"\n"
    return data


def _substitute(args: Sequence[Arg], refs: Sequence[str]) -> List[str]:
    out: List[str] = []
    for a in args:
        if isinstance(a, SecretArg):
            if not 0 <= a.index < len(refs):
                raise ValueError(f"argv references secret {a.index} but only {len(refs)} supplied")
            out.append(refs[a.index])
        else:
            out.append(str(a))
    return out


def _close_quietly(fd: int) -> None:
    with contextlib.suppress(OSError):
        os.close(fd)


def _remove_quietly(path: str) -> None:
    with contextlib.suppress(FileNotFoundError):
        os.remove(path)


class _PipeCarrier:
    """
    Anonymous pipe whose read end is inherited by the child.

    The secret is written from a helper thread once the child is running, so a
    secret larger than the pipe buffer cannot block the caller before the
    timeout and cancel checks are armed.
    """

    def __init__(self, value: str) -> None:
        self._data = _secret_bytes(value)
        try:
            self.read_fd, self._write_fd = os.pipe()
        except OSError as exc:
            raise IOFailure("create secret pipe", exc) from exc
        self._writer: Optional[threading.Thread] = None

    @property
    def ref(self) -> str:
        return f"fd:{self.read_fd}"

    def start(self) -> None:
        # the child holds its own copy of the read end now
        _close_quietly(self.read_fd)
        self._writer = threading.Thread(target=self._feed, name="certconv-secret-pipe", daemon=True)
        self._writer.start()

    def _feed(self) -> None:
        try:
            view = memoryview(self._data)
            while view:
                n = os.write(self._write_fd, view)
                view = view[n:]
        except OSError as exc:
            # reader gone: the child exited or was killed before reading it all
            log.debug("secret pipe closed early: %s", exc)
        finally:
            # EOF for the reader
            _close_quietly(self._write_fd)

    def close(self) -> None:
        if self._writer is None:
            _close_quietly(self.read_fd)
            _close_quietly(self._write_fd)
            return
        self._writer.join()


def _file_carrier(stack: contextlib.ExitStack, value: str) -> str:
    try:
        fd, path = tempfile.mkstemp(prefix="certconv-secret-")
    except OSError as exc:
        raise IOFailure("create secret file", exc) from exc
    stack.callback(_remove_quietly, path)
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(_secret_bytes(value))
        os.chmod(path, 0o600)
    except OSError as exc:
        raise IOFailure("write secret file", exc) from exc
    return f"file:{path}"


class OpenSSLExecutor:
    def __init__(
        self,
        binary: str = "openssl",
        default_timeout: Optional[float] = None,
        poll_interval: float = 0.1,
        use_pipes: Optional[bool] = None,
    ) -> None:
        self.binary = binary
        self.default_timeout = default_timeout
        self.poll_interval = poll_interval
        self.use_pipes = (os.name == "posix") if use_pipes is None else use_pipes

    def run(
        self,
        args: Sequence[str],
        timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None,
    ) -> ExecResult:
        return self.run_with_secrets(args, (), timeout=timeout, cancel=cancel)

    def run_with_secrets(
        self,
        args: Sequence[Arg],
        secrets: Sequence[str],
        timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None,
    ) -> ExecResult:
        with contextlib.ExitStack() as stack:
            refs: List[str] = []
            pipes: List[_PipeCarrier] = []
            for value in secrets:
                if self.use_pipes:
                    pipe = _PipeCarrier(value)
                    stack.callback(pipe.close)
                    pipes.append(pipe)
                    refs.append(pipe.ref)
                else:
                    refs.append(_file_carrier(stack, value))
            argv = [self.binary, *_substitute(args, refs)]
            log.debug("exec %s", " ".join(argv))
            return self._spawn(argv, pipes, timeout if timeout is not None else self.default_timeout, cancel)

    def _spawn(
        self,
        argv: List[str],
        pipes: Sequence[_PipeCarrier],
        timeout: Optional[float],
        cancel: Optional[threading.Event],
    ) -> ExecResult:
        try:
            proc = subprocess.Popen(
                argv,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                pass_fds=tuple(p.read_fd for p in pipes),
            )
        except FileNotFoundError as exc:
            raise ToolchainFailure(f"{self.binary} not found in PATH", subkind="not-found") from exc
        except OSError as exc:
            raise IOFailure(f"start {self.binary}", exc) from exc

        for pipe in pipes:
            pipe.start()
        with proc:
            try:
                stdout, stderr = self._communicate(proc, timeout, cancel)
            except Cancelled as exc:
                proc.kill()
                out, err = proc.communicate()
                raise Cancelled(
                    str(exc),
                    stdout=out.decode("utf-8", errors="replace"),
                    stderr=err.decode("utf-8", errors="replace"),
                ) from None
            except BaseException:
                proc.kill()
                raise
        return ExecResult(stdout=stdout, stderr=stderr, returncode=proc.returncode)

    def _communicate(
        self,
        proc: subprocess.Popen,
        timeout: Optional[float],
        cancel: Optional[threading.Event],
    ) -> Tuple[bytes, bytes]:
        if timeout is None and cancel is None:
            return proc.communicate()

        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            if cancel is not None and cancel.is_set():
                raise Cancelled(f"{self.binary} cancelled")
            wait = self.poll_interval
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise Cancelled(f"{self.binary} timed out after {timeout}s")
                wait = min(wait, remaining) if cancel is not None else remaining
            try:
                return proc.communicate(timeout=wait)
            except subprocess.TimeoutExpired:
                continue
