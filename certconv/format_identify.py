import os
import re
from pathlib import Path
from typing import Iterator, Tuple, Union

from .contracts import Kind

_EXT_KINDS = {
    ".pfx": Kind.PKCS12,
    ".p12": Kind.PKCS12,
    ".der": Kind.DER,
    ".key": Kind.PRIVATE_KEY,
    ".base64": Kind.BASE64,
    ".b64": Kind.BASE64,
}

_CERT_MARKER = "BEGIN CERTIFICATE"
_KEY_HEADER = re.compile(r"^-----BEGIN (RSA |EC |ENCRYPTED )?PRIVATE KEY-----$")

_ASN1_SEQUENCE = 0x30

PathLike = Union[str, os.PathLike]


def _lines(path: PathLike) -> Iterator[str]:
    with open(path, "r", encoding="utf-8", errors="replace", newline=None) as fh:
        for line in fh:
            yield line.rstrip("\r\n")


def scan_markers(path: PathLike) -> Tuple[bool, bool]:
    has_cert = has_key = False
    for line in _lines(path):
        if _CERT_MARKER in line:
            has_cert = True
        if _KEY_HEADER.match(line):
            has_key = True
        if has_cert and has_key:
            break
    return has_cert, has_key


def classify(path: PathLike) -> Kind:
    kind = _EXT_KINDS.get(Path(path).suffix.lower())
    if kind is not None:
        return kind

    try:
        has_cert, has_key = scan_markers(path)
    except OSError:
        return Kind.UNKNOWN

    if has_cert and has_key:
        return Kind.COMBINED
    if has_cert:
        return Kind.CERTIFICATE
    if has_key:
        return Kind.PRIVATE_KEY
    return Kind.UNKNOWN


def key_type(path: PathLike) -> str:
    try:
        for line in _lines(path):
            if "RSA PRIVATE KEY" in line:
                return "RSA"
            if "EC PRIVATE KEY" in line:
                return "EC"
    except OSError:
        pass
    return "PKCS#8"


def is_der_like(data: bytes) -> bool:
    # Weak signal: lots of ASN.1 structures open with a SEQUENCE.
    return len(data) > 0 and data[0] == _ASN1_SEQUENCE


def is_der_file(path: PathLike) -> bool:
    with open(path, "rb") as fh:
        return is_der_like(fh.read(1))
