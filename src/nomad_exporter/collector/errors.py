"""Errors raised by the collection stages."""

from typing import Optional


class CollectionError(Exception):
    """Raised when a stage of the scrape cannot continue."""

    def __init__(self, stage: str, message: str, cause: Optional[Exception] = None):
        self.stage = stage
        self.cause = cause
        detail = f"[{stage}] {message}"
        if cause is not None:
            detail += f": {cause}"
        super().__init__(detail)
