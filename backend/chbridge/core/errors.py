"""Exception types surfaced to API clients.

Every error carries the HTTP status it maps to; the application's exception
handlers render it into the standard response envelope.
"""

from __future__ import annotations


class BridgeError(Exception):
    """Base class for errors reported through the response envelope."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


# --------------------------- Client input (400) ----------------------------


class RequestValidationFailed(BridgeError):
    status_code = 400


class UploadTooLarge(RequestValidationFailed):
    def __init__(self, limit: int) -> None:
        super().__init__(f"File size exceeds limit of {limit} bytes")
        self.limit = limit


class CoercionError(RequestValidationFailed):
    """Raised in strict mode when a field does not parse as its column type."""

    def __init__(self, row: int, column: str, column_type: str, value: str) -> None:
        super().__init__(
            f"row {row}: value {value!r} for column {column!r} is not a valid {column_type}"
        )
        self.row = row
        self.column = column
        self.value = value


class ImportRowError(RequestValidationFailed):
    def __init__(self, row: int, detail: str) -> None:
        super().__init__(f"failed to append row {row}: {detail}")
        self.row = row


class StoredFileNotFound(BridgeError):
    status_code = 400


class DelimitedFormatError(BridgeError):
    status_code = 400


# --------------------------- Backend (500) ---------------------------------


class FileStoreError(BridgeError):
    status_code = 500


class ClickHouseConnectionError(BridgeError):
    status_code = 500


class QueryError(BridgeError):
    status_code = 500


__all__ = [
    "BridgeError",
    "RequestValidationFailed",
    "UploadTooLarge",
    "CoercionError",
    "ImportRowError",
    "StoredFileNotFound",
    "DelimitedFormatError",
    "FileStoreError",
    "ClickHouseConnectionError",
    "QueryError",
]
