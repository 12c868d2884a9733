"""Local storage for uploaded and exported delimited files.

All reads load the whole file into memory; there is no streaming API.
Writes go through a temporary file in the target directory followed by an
atomic rename, so readers never observe a half-written export.
"""

from __future__ import annotations

import csv
import io
import logging
import os
import tempfile
import time
from datetime import date, datetime
from pathlib import Path
from typing import Any, BinaryIO, Iterable, List, Sequence

from chbridge.core.config import Settings
from chbridge.core.errors import (
    DelimitedFormatError,
    FileStoreError,
    RequestValidationFailed,
    StoredFileNotFound,
    UploadTooLarge,
)

logger = logging.getLogger(__name__)

DEFAULT_DELIMITER = ","
DEFAULT_PREVIEW_LIMIT = 100
_COPY_CHUNK = 1024 * 1024


def validate_delimiter(delimiter: str | None) -> str:
    if delimiter is None or delimiter == "":
        return DEFAULT_DELIMITER
    if delimiter in ("\\t", "tab"):
        return "\t"
    if len(delimiter) != 1 or delimiter in ('"', "\r", "\n"):
        raise RequestValidationFailed(
            f"delimiter must be a single character, got {delimiter!r}"
        )
    return delimiter


def _replace_atomically(target: Path, data: bytes) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    # Temp file in the target directory so the rename stays on one filesystem.
    fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=".", suffix=".part")
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp_name, target)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def _render(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.isoformat(sep=" ")
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


class FileStore:
    """Reads, writes and removes delimited files under the upload directory."""

    def __init__(
        self,
        upload_dir: str | Path,
        max_upload_size: int,
        restrict_to_upload_dir: bool = True,
    ) -> None:
        self.upload_dir = Path(upload_dir)
        self.max_upload_size = max_upload_size
        self.restrict_to_upload_dir = restrict_to_upload_dir

    @classmethod
    def from_settings(cls, settings: Settings) -> "FileStore":
        return cls(
            settings.upload_dir,
            settings.max_upload_size,
            restrict_to_upload_dir=settings.restrict_to_upload_dir,
        )

    # ---------------- Paths -----------------
    def resolve(self, path: str | Path | None) -> Path:
        """Return the absolute path for ``path``, enforcing the upload root."""
        if path is None or str(path).strip() == "":
            raise RequestValidationFailed("File path is required")
        try:
            p = Path(path).expanduser().resolve()
        except (OSError, ValueError) as e:
            raise RequestValidationFailed(f"Invalid file path: {e}") from e
        if self.restrict_to_upload_dir:
            root = self.upload_dir.resolve()
            if p != root and root not in p.parents:
                raise RequestValidationFailed("File path outside upload directory")
        return p

    def unique_path(self, filename: str) -> Path:
        name = Path(filename or "upload").name or "upload"
        return self.upload_dir / f"{time.time_ns()}_{name}"

    # ---------------- Reading -----------------
    def read_delimited(
        self, path: str | Path, delimiter: str = DEFAULT_DELIMITER
    ) -> List[List[str]]:
        p = self.resolve(path)
        delimiter = validate_delimiter(delimiter)
        if not p.is_file():
            raise StoredFileNotFound(f"file not found: {path}")
        try:
            text = p.read_text(encoding="utf-8-sig")
        except UnicodeDecodeError as e:
            raise DelimitedFormatError(f"failed to read file: {e}") from e
        except OSError as e:
            raise FileStoreError(f"failed to open file: {e}") from e

        reader = csv.reader(io.StringIO(text, newline=""), delimiter=delimiter, strict=True)
        records: List[List[str]] = []
        try:
            for row in reader:
                if not row:
                    continue
                if records and len(row) != len(records[0]):
                    raise DelimitedFormatError(
                        f"record on line {reader.line_num}: wrong number of fields "
                        f"(expected {len(records[0])}, got {len(row)})"
                    )
                records.append(row)
        except csv.Error as e:
            raise DelimitedFormatError(
                f"failed to read CSV on line {reader.line_num}: {e}"
            ) from e
        return records

    def get_header(self, path: str | Path, delimiter: str = DEFAULT_DELIMITER) -> List[str]:
        records = self.read_delimited(path, delimiter)
        if not records:
            raise DelimitedFormatError("file is empty")
        logger.info("Found %d columns in %s", len(records[0]), path)
        return records[0]

    def preview(
        self,
        path: str | Path,
        delimiter: str = DEFAULT_DELIMITER,
        limit: int = DEFAULT_PREVIEW_LIMIT,
    ) -> List[List[str]]:
        """Return up to ``limit`` data rows; the header row is not included."""
        if limit is None or limit < 0:
            limit = DEFAULT_PREVIEW_LIMIT
        records = self.read_delimited(path, delimiter)
        if not records:
            raise DelimitedFormatError("file is empty")
        rows = records[1 : limit + 1]
        logger.info("Generated preview of %s with %d rows", path, len(rows))
        return rows

    def data_rows(
        self, path: str | Path, delimiter: str = DEFAULT_DELIMITER
    ) -> List[List[str]]:
        """All rows after the header."""
        records = self.read_delimited(path, delimiter)
        if not records:
            raise DelimitedFormatError("file is empty")
        return records[1:]

    # ---------------- Writing -----------------
    def write_delimited(
        self,
        path: str | Path,
        rows: Iterable[Sequence[Any]],
        delimiter: str = DEFAULT_DELIMITER,
    ) -> Path:
        p = self.resolve(path)
        delimiter = validate_delimiter(delimiter)
        buf = io.StringIO(newline="")
        writer = csv.writer(buf, delimiter=delimiter, lineterminator="\n")
        for row in rows:
            writer.writerow([_render(v) for v in row])
        try:
            _replace_atomically(p, buf.getvalue().encode("utf-8"))
        except OSError as e:
            raise FileStoreError(f"failed to write file: {e}") from e
        return p

    def save_upload(self, filename: str, source: BinaryIO) -> Path:
        """Persist an uploaded stream under a timestamp-prefixed unique name.

        The size ceiling is checked while buffering, before anything touches
        the disk.
        """
        limit = self.max_upload_size
        chunks: list[bytes] = []
        total = 0
        while True:
            chunk = source.read(_COPY_CHUNK)
            if not chunk:
                break
            total += len(chunk)
            if total > limit:
                raise UploadTooLarge(limit)
            chunks.append(chunk)
        logger.info("Received file upload: %s (size: %d bytes)", filename, total)

        target = self.unique_path(filename)
        try:
            self.upload_dir.mkdir(parents=True, exist_ok=True)
            _replace_atomically(target, b"".join(chunks))
        except OSError as e:
            raise FileStoreError(f"Failed to save file: {e}") from e
        logger.info("File saved successfully: %s", target)
        return target

    # ---------------- Cleanup -----------------
    def cleanup(self, path: str | Path) -> None:
        p = self.resolve(path)
        try:
            p.unlink()
        except FileNotFoundError as e:
            raise StoredFileNotFound(f"file not found: {path}") from e
        except IsADirectoryError as e:
            raise RequestValidationFailed(f"not a file: {path}") from e
        except OSError as e:
            raise FileStoreError(f"failed to remove file: {e}") from e
        logger.info("Removed %s", p)


__all__ = [
    "FileStore",
    "validate_delimiter",
    "DEFAULT_DELIMITER",
    "DEFAULT_PREVIEW_LIMIT",
]
