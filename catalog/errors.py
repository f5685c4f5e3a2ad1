"""Error taxonomy shared by the catalog services and the API layer."""

from __future__ import annotations


class CatalogError(Exception):
    """Base error carrying the HTTP status the API layer should answer with."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(CatalogError):
    status_code = 400


class NotFoundError(CatalogError):
    status_code = 404


class UpstreamError(CatalogError):
    """Provider fetch failed (non-success status or transport error)."""

    status_code = 500


class StoreError(CatalogError):
    """Backing store could not complete a read or write."""

    status_code = 500


class FeedCancelled(CatalogError):
    """A feed collection pass was aborted before its wait window elapsed."""

    status_code = 499
