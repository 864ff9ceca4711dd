import base64
import binascii

from ..errors import MalformedInput, MalformedReason, UsageError


def encode(data: bytes) -> bytes:
    """Single-line standard base64, no trailing newline."""
    return base64.b64encode(data)


def decode(text: str, path: str = "") -> bytes:
    content = text.strip()
    if "-----BEGIN" in content:
        raise UsageError(
            "file appears to be PEM format, not raw Base64 "
            "(PEM files are already text - no decoding needed)"
        )
    compact = "".join(content.split())
    if not compact:
        raise MalformedInput(MalformedReason.EMPTY_PAYLOAD, "no base64 content", path or None)
    try:
        return base64.b64decode(compact, validate=True)
    except binascii.Error:
        pass
    # unpadded input
    try:
        return base64.b64decode(compact + "=" * (-len(compact) % 4), validate=True)
    except binascii.Error as exc:
        raise MalformedInput(
            MalformedReason.NON_BASE64_CONTENT,
            "file may contain invalid Base64 characters",
            path or None,
        ) from exc
