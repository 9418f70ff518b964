import os
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Literal, overload


@overload
def find_config_file(filename: str, cwd: Path | None = None, required: Literal[False] = False) -> Path | None: ...


@overload
def find_config_file(filename: str, cwd: Path | None = None, required: Literal[True] = True) -> Path: ...


def find_config_file(filename: str, cwd: Path | None = None, required: bool = True) -> Path | None:
    """
    Find a file with the given *filename* in the given *cwd* or any of its parent directories.
    """

    if cwd is None:
        cwd = Path.cwd()

    for directory in [cwd, *cwd.parents]:
        file = directory / filename
        if file.is_file():
            return file

    if required:
        raise FileNotFoundError(f"Could not find '{filename}' in '{cwd}' or any of its parent directories.")

    return None


def atomic_write_text(path: Path, content: str, mode: int = 0o644) -> None:
    """
    Replace the contents of *path* with *content* such that readers either see the old or the new file, never a
    partially written one. The data is written to a temporary file in the same directory, flushed to disk and then
    renamed over *path*.
    """

    tmp: Path | None = None
    try:
        with NamedTemporaryFile("w", dir=path.parent, prefix=f".{path.name}.", suffix=".tmp", delete=False) as fp:
            tmp = Path(fp.name)
            fp.write(content)
            fp.flush()
            os.fsync(fp.fileno())
        os.chmod(tmp, mode)
        os.replace(tmp, path)
    except BaseException:
        if tmp is not None:
            tmp.unlink(missing_ok=True)
        raise
