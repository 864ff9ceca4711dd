from __future__ import annotations

import contextlib
import os
import re
import tempfile
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterator, List, Optional, Union

from ..errors import IOFailure, MalformedInput, MalformedReason

CERT_LABEL = r"CERTIFICATE"
KEY_LABEL = r"(?:RSA |EC |ENCRYPTED )?PRIVATE KEY"

_BEGIN = re.compile(r"^-----BEGIN ([A-Z0-9 ]+)-----$")
_END = re.compile(r"^-----END ([A-Z0-9 ]+)-----$")
_B64_LINE = re.compile(r"^[A-Za-z0-9+/=]+$")
_WS = re.compile(r"\s+")

WRAP = 64


class PEMExpect(str, Enum):
    CERT = "cert"
    KEY = "key"
    ANY = "auto"

    @property
    def label_re(self) -> re.Pattern:
        if self is PEMExpect.CERT:
            body = CERT_LABEL
        elif self is PEMExpect.KEY:
            body = KEY_LABEL
        else:
            body = f"(?:{CERT_LABEL}|{KEY_LABEL})"
        return re.compile(rf"^{body}$")


@dataclass(frozen=True)
class PEMBlock:
    label: str
    payload: str
    begin_line: int
    end_line: int

    def render(self) -> str:
        chunks = [self.payload[i : i + WRAP] for i in range(0, len(self.payload), WRAP)]
        return f"-----BEGIN {self.label}-----\n" + "\n".join(chunks) + f"\n-----END {self.label}-----\n"


def _read_text(path: Union[str, os.PathLike]) -> str:
    try:
        with open(path, "rb") as fh:
            return fh.read().decode("utf-8", errors="replace")
    except OSError as exc:
        raise IOFailure(f"read {path}", exc) from exc


def _fail(reason: MalformedReason, detail: str, path: Optional[str]) -> MalformedInput:
    return MalformedInput(reason, detail, path)


def parse_strict(text: str, expect: PEMExpect = PEMExpect.ANY, path: Optional[str] = None) -> PEMBlock:
    label_re = expect.label_re
    label: Optional[str] = None
    begin_no = end_no = 0
    inside = False
    payload: List[str] = []

    for no, line in enumerate(text.splitlines(), start=1):
        m = _BEGIN.match(line)
        if m and label_re.match(m.group(1)):
            if label is not None:
                raise _fail(MalformedReason.DUPLICATE_BEGIN, f"second BEGIN on line {no}", path)
            label, begin_no, inside = m.group(1), no, True
            continue

        m = _END.match(line)
        if m:
            if label is None:
                raise _fail(MalformedReason.MISSING_BEGIN, f"END on line {no} without BEGIN", path)
            if not inside:
                raise _fail(MalformedReason.DUPLICATE_END, f"second END on line {no}", path)
            if m.group(1) != label:
                raise _fail(
                    MalformedReason.LABEL_MISMATCH,
                    f"BEGIN {label} closed by END {m.group(1)}",
                    path,
                )
            end_no, inside = no, False
            continue

        if inside:
            if not line.strip():
                raise _fail(MalformedReason.BLANK_LINE_IN_BLOCK, f"line {no}", path)
            if not _B64_LINE.match(line):
                raise _fail(MalformedReason.NON_BASE64_CONTENT, f"line {no}", path)
            payload.append(line)
        elif line.strip():
            raise _fail(MalformedReason.CONTENT_OUTSIDE_BLOCK, f"line {no}", path)

    if label is None:
        raise _fail(MalformedReason.MISSING_BEGIN, "no PEM block found", path)
    if inside:
        raise _fail(MalformedReason.MISSING_END, f"BEGIN {label} never closed", path)
    if not payload:
        raise _fail(MalformedReason.EMPTY_PAYLOAD, label, path)

    return PEMBlock(label=label, payload="".join(payload), begin_line=begin_no, end_line=end_no)


def validate_strict(path: Union[str, os.PathLike], expect: PEMExpect = PEMExpect.ANY) -> PEMBlock:
    return parse_strict(_read_text(path), expect, path=str(path))


def normalize_text(text: str, expect: PEMExpect = PEMExpect.ANY, path: Optional[str] = None) -> str:
    lines = [ln.strip() for ln in text.splitlines()]
    label_re = expect.label_re

    label: Optional[str] = None
    for line in lines:
        m = _BEGIN.match(line)
        if m and label_re.match(m.group(1)):
            label = m.group(1)
            break
    if label is None:
        raise _fail(MalformedReason.MISSING_BEGIN, "could not find a PEM block to normalize", path)

    begin_line = f"-----BEGIN {label}-----"
    end_line = f"-----END {label}-----"
    begins = [i for i, ln in enumerate(lines) if ln == begin_line]
    ends = [i for i, ln in enumerate(lines) if ln == end_line]

    if len(begins) > 1:
        raise _fail(MalformedReason.DUPLICATE_BEGIN, f"found {len(begins)} BEGIN {label}", path)
    if not ends:
        raise _fail(MalformedReason.MISSING_END, f"no END {label}", path)
    if len(ends) > 1:
        raise _fail(MalformedReason.DUPLICATE_END, f"found {len(ends)} END {label}", path)
    b, e = begins[0], ends[0]
    if b >= e:
        raise _fail(MalformedReason.MISSING_BEGIN, f"END {label} precedes BEGIN", path)

    for i, line in enumerate(lines):
        if (i < b or i > e) and line:
            raise _fail(MalformedReason.CONTENT_OUTSIDE_BLOCK, f"line {i + 1}", path)

    payload = _WS.sub("", "".join(lines[b + 1 : e]))
    if not payload:
        raise _fail(MalformedReason.EMPTY_PAYLOAD, label, path)
    if not _B64_LINE.match(payload):
        raise _fail(MalformedReason.NON_BASE64_CONTENT, "invalid base64 in PEM payload", path)

    return PEMBlock(label=label, payload=payload, begin_line=b + 1, end_line=e + 1).render()


def normalize(path: Union[str, os.PathLike], expect: PEMExpect = PEMExpect.ANY) -> str:
    return normalize_text(_read_text(path), expect, path=str(path))


@contextlib.contextmanager
def write_normalized(path: Union[str, os.PathLike], expect: PEMExpect = PEMExpect.ANY) -> Iterator[Path]:
    """Yield a private scratch file holding the canonical form of `path`."""
    canonical = normalize(path, expect)
    try:
        fd, tmp = tempfile.mkstemp(prefix="certconv-", suffix=".pem")
    except OSError as exc:
        raise IOFailure("create normalized PEM scratch file", exc) from exc
    try:
        try:
            with os.fdopen(fd, "w", encoding="ascii", newline="\n") as fh:
                fh.write(canonical)
        except OSError as exc:
            raise IOFailure("write normalized PEM scratch file", exc) from exc
        yield Path(tmp)
    finally:
        with contextlib.suppress(FileNotFoundError):
            os.remove(tmp)


def pem_payload(text: str) -> str:
    """Concatenated payload of every PEM block in `text`, markers and blank lines dropped."""
    out: List[str] = []
    inside = False
    for line in text.splitlines():
        line = line.strip()
        if line.startswith("-----BEGIN "):
            inside = True
            continue
        if line.startswith("-----END "):
            inside = False
            continue
        if inside and line:
            out.append(line)
    return "".join(out)
