"""Never-overwrite output helpers: staged temp files committed with a hard link."""
from __future__ import annotations

import contextlib
import os
import tempfile
from pathlib import Path
from typing import Iterator, Union

from .errors import IOFailure, OutputExistsError

PathLike = Union[str, os.PathLike]


def _incremented(dest: Path, n: int) -> Path:
    return dest.with_name(f"{dest.stem}-{n}{dest.suffix}")


def next_available_path(dest: PathLike) -> Path:
    dest = Path(dest)
    if not dest.exists():
        return dest
    for i in range(1, 10_000):
        candidate = _incremented(dest, i)
        if not candidate.exists():
            return candidate
    return _incremented(dest, 10_000)


def ensure_not_exists(dest: PathLike) -> None:
    if os.path.lexists(dest):
        raise OutputExistsError(str(dest), str(next_available_path(dest)))


def write_exclusive(dest: PathLike, data: bytes, mode: int = 0o644) -> None:
    ensure_not_exists(dest)
    try:
        fd = os.open(dest, os.O_WRONLY | os.O_CREAT | os.O_EXCL, mode)
    except FileExistsError:
        raise OutputExistsError(str(dest), str(next_available_path(dest))) from None
    except OSError as exc:
        raise IOFailure(f"create {dest}", exc) from exc
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
    except OSError as exc:
        raise IOFailure(f"write {dest}", exc) from exc


@contextlib.contextmanager
def staged(dest: PathLike) -> Iterator[Path]:
    """Yield an empty hidden temp file next to `dest`; removed on exit whatever happens."""
    parent = Path(dest).parent
    try:
        fd, tmp = tempfile.mkstemp(prefix=".certconv-", dir=parent)
        os.close(fd)
    except OSError as exc:
        raise IOFailure(f"create temp file in {parent}", exc) from exc
    try:
        yield Path(tmp)
    finally:
        with contextlib.suppress(FileNotFoundError):
            os.remove(tmp)


def commit(tmp: PathLike, dest: PathLike, mode: int) -> None:
    ensure_not_exists(dest)
    try:
        # link() refuses to replace an existing dest
        os.link(tmp, dest)
    except FileExistsError:
        raise OutputExistsError(str(dest), str(next_available_path(dest))) from None
    except OSError as exc:
        raise IOFailure(f"commit {dest}", exc) from exc
    try:
        os.chmod(dest, mode)
    except OSError as exc:
        raise IOFailure(f"chmod {dest}", exc) from exc


@contextlib.contextmanager
def scratch(suffix: str = "") -> Iterator[Path]:
    """Private temp file outside the output directory, for intermediate toolchain output."""
    try:
        fd, tmp = tempfile.mkstemp(prefix="certconv-", suffix=suffix)
        os.close(fd)
    except OSError as exc:
        raise IOFailure("create scratch file", exc) from exc
    try:
        yield Path(tmp)
    finally:
        with contextlib.suppress(FileNotFoundError):
            os.remove(tmp)
