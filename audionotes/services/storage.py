from __future__ import annotations

import shutil
from pathlib import Path

from audionotes.core.config import settings

ORIGINAL_STEM = "original"
CONVERTED_NAME = "converted.mp3"
MARKDOWN_NAME = "output.md"
TRANSCRIPT_NAME = "output.txt"


def get_user_data_dir(user_id: str, data_dir: str | None = None) -> Path:
    return Path(data_dir or settings.data_dir) / user_id


def get_note_dir(user_id: str, note_id: str, data_dir: str | None = None) -> Path:
    return get_user_data_dir(user_id, data_dir) / note_id


def transcript_path_for(markdown_path: str | Path) -> Path:
    """The transcript is written next to the note markdown as output.txt."""
    return Path(markdown_path).with_name(TRANSCRIPT_NAME)


def get_file_extension(filename: str) -> str:
    return Path(filename or "").suffix.lower()


class FileStorage:
    """
    Local filesystem storage used by the upload handler and the pipeline.

    Paths are plain filesystem paths; parent directories are created on write.
    """

    def exists(self, path: str | Path) -> bool:
        return Path(path).exists()

    def write_bytes(self, path: str | Path, data: bytes) -> None:
        p = Path(path)
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_bytes(data)

    def write_text(self, path: str | Path, text: str) -> None:
        # newline="" keeps the content byte-for-byte on every platform
        p = Path(path)
        p.parent.mkdir(parents=True, exist_ok=True)
        with p.open("w", encoding="utf-8", newline="") as fh:
            fh.write(text)

    def read_bytes(self, path: str | Path) -> bytes:
        return Path(path).read_bytes()

    def read_text(self, path: str | Path) -> str:
        with Path(path).open("r", encoding="utf-8", newline="") as fh:
            return fh.read()

    def delete(self, path: str | Path) -> None:
        Path(path).unlink(missing_ok=True)

    def delete_dir(self, path: str | Path) -> None:
        p = Path(path)
        if p.exists():
            shutil.rmtree(p, ignore_errors=True)


file_storage = FileStorage()
