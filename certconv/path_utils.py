import os
import pathlib
import re
from typing import Optional
from urllib.parse import unquote, urlparse

_WIN_DRIVE = re.compile(r"^/([A-Za-z]:/.*)$")


def parse_file_uri(uri_or_path: str) -> pathlib.Path:
    """Accept plain paths and file:// URIs as sent by MCP clients."""
    if not uri_or_path.startswith("file://"):
        return pathlib.Path(uri_or_path)
    path = urlparse(uri_or_path).path or ""
    if os.name == "nt":
        m = _WIN_DRIVE.match(path)
        if m:
            path = m.group(1)
    return pathlib.Path(unquote(path))


def resolve_path(path_like: str | os.PathLike[str]) -> pathlib.Path:
    return parse_file_uri(str(path_like)).expanduser().resolve(strict=False)


def resolve_output(value: Optional[str]) -> Optional[str]:
    # None and "-" mean "return the bytes", not a file name
    if value is None or value.strip() in ("", "-"):
        return None
    return str(resolve_path(value.strip()))
