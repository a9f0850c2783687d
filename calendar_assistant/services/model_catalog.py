"""List the Gemini models available to the configured API key.

Useful when a model name stops working: the REST ``models`` endpoint shows
which models the key can reach and which generation methods they support.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from calendar_assistant.config import GEMINI_API_BASE_URL, GOOGLE_API_KEY
from calendar_assistant.services.metrics import metrics

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT_SECONDS = 15.0


class ModelCatalogError(Exception):
    """Raised when the model list cannot be fetched."""


def list_models(
    api_key: str | None = None,
    *,
    base_url: str = GEMINI_API_BASE_URL,
    client: httpx.Client | None = None,
) -> list[dict[str, Any]]:
    """Return ``[{"name": ..., "methods": [...]}, ...]`` for every visible model.

    Follows ``nextPageToken`` pagination.
    """
    api_key = api_key or GOOGLE_API_KEY
    if not api_key:
        raise ModelCatalogError("GOOGLE_API_KEY (or GEMINI_API_KEY) is not set.")

    owns_client = client is None
    client = client or httpx.Client(base_url=base_url, timeout=REQUEST_TIMEOUT_SECONDS)
    models: list[dict[str, Any]] = []
    try:
        params: dict[str, str] = {"key": api_key}
        while True:
            try:
                with metrics.track("gemini", "GET /models"):
                    response = client.get("/models", params=params)
                    response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                raise ModelCatalogError(
                    f"Listing models failed with {exc.response.status_code}: {exc.response.text}"
                ) from exc
            except httpx.HTTPError as exc:
                raise ModelCatalogError(f"Listing models failed: {exc}") from exc

            data = response.json()
            for model in data.get("models", []):
                models.append({
                    "name": model.get("name", ""),
                    "methods": model.get("supportedGenerationMethods", []),
                })
            page_token = data.get("nextPageToken")
            if not page_token:
                break
            params = {"key": api_key, "pageToken": page_token}
    finally:
        if owns_client:
            client.close()

    logger.debug("Found %d models", len(models))
    return models
