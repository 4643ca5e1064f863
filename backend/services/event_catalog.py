"""
News event catalog provider.

The catalog is an ordered list of NewsEvent records read once at session
start from a local JSON file or an http(s) URL. Any failure degrades to
an empty catalog so the events feature goes inert instead of aborting.
"""
import json
import logging
from pathlib import Path

import httpx
from cachetools import TTLCache
from pydantic import TypeAdapter, ValidationError

from config import get_settings
from schemas.news_event import NewsEvent
from services.errors import DataUnavailable

logger = logging.getLogger(__name__)
settings = get_settings()

_catalog_adapter = TypeAdapter(list[NewsEvent])

# source -> parsed catalog; failures are never cached
_catalog_cache: TTLCache = TTLCache(maxsize=16, ttl=settings.event_catalog_cache_ttl_seconds)


def _read_source(source: str, timeout: float) -> str:
    if source.startswith(("http://", "https://")):
        try:
            response = httpx.get(source, timeout=timeout)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise DataUnavailable(f"Failed to fetch news events from {source}: {exc}") from exc
        return response.text

    try:
        return Path(source).read_text(encoding="utf-8")
    except OSError as exc:
        raise DataUnavailable(f"Failed to read news events from {source}: {exc}") from exc


def fetch_event_catalog(source: str, timeout: float | None = None) -> tuple[NewsEvent, ...]:
    """Fetch and validate a catalog. Raises DataUnavailable on any failure."""
    raw = _read_source(source, timeout or settings.event_catalog_timeout_seconds)
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise DataUnavailable(f"News events at {source} are not valid JSON: {exc}") from exc

    if isinstance(data, dict):
        data = data.get("events", [])
    try:
        events = _catalog_adapter.validate_python(data)
    except ValidationError as exc:
        raise DataUnavailable(
            f"News events at {source} failed validation ({exc.error_count()} errors)"
        ) from exc
    return tuple(events)


def load_event_catalog(source: str | None = None) -> tuple[NewsEvent, ...]:
    """Return the catalog for a source, or an empty tuple if it is unavailable."""
    source = source or settings.event_catalog_source
    if source in _catalog_cache:
        return _catalog_cache[source]

    try:
        events = fetch_event_catalog(source)
    except DataUnavailable as exc:
        logger.warning("News events unavailable, continuing without them: %s", exc)
        return ()

    logger.info("Loaded %d news events from %s", len(events), source)
    _catalog_cache[source] = events
    return events


def clear_catalog_cache() -> None:
    _catalog_cache.clear()
