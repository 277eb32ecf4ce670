"""File helpers for assembling and compressing Vagrant boxes."""

from __future__ import annotations

import gzip
import json
import logging
import os
import shutil
import tarfile
import tempfile
from pathlib import Path
from typing import Any, BinaryIO, Iterator

from vagrantbox.core import Ui

log = logging.getLogger(__name__)

NO_COMPRESSION = 0
DEFAULT_COMPRESSION = -1
_ZLIB_DEFAULT_LEVEL = 6


class InvalidCompressionLevelError(ValueError):
    """Raised when a gzip compression level is out of range."""

    def __init__(self) -> None:
        super().__init__("Invalid compression level. Expected an integer from -1 to 9.")


def copy_contents(dst: str | os.PathLike, src: str | os.PathLike) -> None:
    """Copy the contents of ``src`` to ``dst``, creating parent directories."""
    with open(src, "rb") as source:
        parent = os.path.dirname(os.fspath(dst))
        if parent:
            os.makedirs(parent, mode=0o755, exist_ok=True)
        with open(dst, "wb") as target:
            shutil.copyfileobj(source, target)


def link_file(dst: str | os.PathLike, src: str | os.PathLike) -> None:
    """Hard-link ``src`` to ``dst``, creating parent directories."""
    parent = os.path.dirname(os.fspath(dst))
    if parent:
        os.makedirs(parent, mode=0o755, exist_ok=True)
    os.link(src, dst)


def _check_level(level: int) -> None:
    if isinstance(level, bool) or not isinstance(level, int) or not -1 <= level <= 9:
        raise InvalidCompressionLevelError()


def _walk(path: Path) -> Iterator[Path]:
    yield path
    if path.is_dir() and not path.is_symlink():
        for child in sorted(path.iterdir(), key=lambda p: p.name):
            yield from _walk(child)


def _write_tar(stream: BinaryIO, root: Path, dst: Path, ui: Ui | None) -> None:
    with tarfile.open(fileobj=stream, mode="w", format=tarfile.GNU_FORMAT) as tar:
        for path in _walk(root):
            if path.is_dir() and not path.is_symlink():
                log.debug("Skipping directory '%s' for box '%s'", path, dst)
                continue
            log.debug("Box add: '%s' to '%s'", path, dst)
            name = path.relative_to(root).as_posix()
            info = tar.gettarinfo(str(path), arcname=name)
            info.uname = ""
            info.gname = ""
            if ui is not None:
                ui.message(f"Compressing: {name}")
            if info.isreg():
                with open(path, "rb") as data:
                    tar.addfile(info, data)
            else:
                tar.addfile(info)


def dir_to_box(
    dst: str | os.PathLike,
    directory: str | os.PathLike,
    ui: Ui | None = None,
    level: int = DEFAULT_COMPRESSION,
) -> None:
    """Pack every file under ``directory`` into a box at ``dst``.

    Level 0 writes a plain tar archive; any other level from -1 to 9 gzips it.
    The directory is not checked for being a valid box.
    """
    _check_level(level)
    target = Path(dst)
    root = Path(directory)
    log.info("Turning dir into box: %s => %s", root, target)
    target.parent.mkdir(parents=True, exist_ok=True)

    with open(target, "wb") as raw:
        if level == NO_COMPRESSION:
            _write_tar(raw, root, target, ui)
            return
        log.info("Compressing with gzip compression level: %d", level)
        gz_level = _ZLIB_DEFAULT_LEVEL if level == DEFAULT_COMPRESSION else level
        with gzip.GzipFile(filename="", mode="wb", fileobj=raw, compresslevel=gz_level, mtime=0) as gz:
            _write_tar(gz, root, target, ui)


def create_dummy_box(ui: Ui, level: int) -> None:
    """Build a throwaway box to check the host can create boxes at all."""
    ui.say("Creating a dummy Vagrant box to ensure the host system can create one correctly")
    with tempfile.TemporaryDirectory(prefix="packer") as temp_dir:
        write_metadata(temp_dir, {})
        handle, box_path = tempfile.mkstemp(prefix="box-", suffix=".box")
        os.close(handle)
        try:
            dir_to_box(box_path, temp_dir, None, level)
        finally:
            os.remove(box_path)


def write_metadata(directory: str | os.PathLike, contents: Any) -> None:
    """Write ``metadata.json`` into ``directory`` unless it already exists."""
    path = Path(directory) / "metadata.json"
    if path.exists():
        return
    text = json.dumps(contents, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    for char, escaped in (
        ("<", "\\u003c"),
        (">", "\\u003e"),
        ("&", "\\u0026"),
        ("\u2028", "\\u2028"),
        ("\u2029", "\\u2029"),
    ):
        text = text.replace(char, escaped)
    path.write_text(text + "\n", encoding="utf-8")