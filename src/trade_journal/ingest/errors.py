from __future__ import annotations

from collections.abc import Iterable


class IngestError(ValueError):
    """A whole file could not be ingested."""


class EmptyFileError(IngestError):
    pass


class MappingError(IngestError):
    def __init__(self, errors: Iterable[str]) -> None:
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


class MissingColumnsError(IngestError):
    def __init__(self, missing_fields: Iterable[str], headers: Iterable[str]) -> None:
        self.missing_fields = list(missing_fields)
        self.headers = list(headers)
        super().__init__(
            "Could not resolve required column(s) "
            f"{', '.join(self.missing_fields)}. "
            f"Your CSV has: {', '.join(self.headers) or '(no headers)'}"
        )
