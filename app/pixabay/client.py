import logging
from typing import Any
from urllib.parse import urljoin

import requests

from catalog.errors import UpstreamError, ValidationError
from catalog.types import MediaType
from config.settings import PIXABAY_BASE_URL, PIXABAY_KEY, PIXABAY_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)

IMAGE_ENDPOINT = "/api/"
VIDEO_ENDPOINT = "/api/videos/"
MIN_PER_PAGE = 3
MAX_PER_PAGE = 200


class PixabayClient:
    """Thin client for the Pixabay image and video search endpoints.

    Each call is a single attempt; non-200 answers and transport failures
    raise ``UpstreamError`` with a message safe to show to API callers.
    """

    def __init__(
        self,
        api_key: str | None = None,
        *,
        base_url: str | None = None,
        timeout_seconds: float | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self.api_key = api_key if api_key is not None else PIXABAY_KEY
        self.base_url = (base_url or PIXABAY_BASE_URL).rstrip("/") + "/"
        self.timeout_seconds = float(timeout_seconds or PIXABAY_TIMEOUT_SECONDS)
        self._session = session or requests.Session()

    def build_params(
        self,
        q: str,
        media_type: MediaType,
        *,
        category: str = "",
        orientation: str = "",
        safesearch: str = "true",
        per_page: int = 20,
    ) -> dict[str, Any]:
        params: dict[str, Any] = {"key": self.api_key, "q": q}
        if media_type is MediaType.IMAGE:
            params["image_type"] = "photo"
        if category:
            params["category"] = category
        if media_type is MediaType.IMAGE and orientation:
            params["orientation"] = orientation
        params["safesearch"] = safesearch
        params["per_page"] = str(min(MAX_PER_PAGE, max(MIN_PER_PAGE, int(per_page))))
        params["order"] = "popular"
        return params

    def search(
        self,
        q: str,
        media_type: MediaType | str = MediaType.IMAGE,
        *,
        category: str = "",
        orientation: str = "",
        safesearch: str = "true",
        per_page: int = 20,
    ) -> list[dict[str, Any]]:
        """Return the raw ``hits`` list for a query."""
        if not self.api_key:
            raise UpstreamError("Pixabay API key is not configured")
        try:
            kind = media_type if isinstance(media_type, MediaType) else MediaType(str(media_type))
        except ValueError as exc:
            raise ValidationError("type must be 'image' or 'video'") from exc
        endpoint = IMAGE_ENDPOINT if kind is MediaType.IMAGE else VIDEO_ENDPOINT
        url = urljoin(self.base_url, endpoint.lstrip("/"))
        params = self.build_params(
            q,
            kind,
            category=category,
            orientation=orientation,
            safesearch=safesearch,
            per_page=per_page,
        )
        try:
            resp = self._session.get(url, params=params, timeout=self.timeout_seconds)
        except requests.RequestException as exc:
            logger.info("[PIXABAY] request=%s status=error q=%r", endpoint, q)
            raise UpstreamError(f"Pixabay request failed: {exc.__class__.__name__}") from exc
        status = int(resp.status_code)
        logger.info("[PIXABAY] request=%s status=%s q=%r", endpoint, status, q)
        if status != 200:
            raise UpstreamError(f"Pixabay error: {status}")
        try:
            payload = resp.json()
        except ValueError as exc:
            raise UpstreamError("Pixabay returned invalid JSON") from exc
        hits = payload.get("hits") if isinstance(payload, dict) else None
        return [hit for hit in hits or [] if isinstance(hit, dict)]

    def close(self) -> None:
        self._session.close()
