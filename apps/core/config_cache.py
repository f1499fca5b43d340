"""
TTL cache for YAML override files.

Payloads are mappings of named sections. A caller can declare the expected
type of each section; sections of the wrong type are dropped (with a
warning) so one bad entry never discards the rest of the file.
"""

from __future__ import annotations

import copy
import logging
import os
import threading
import time
from typing import Any, Dict, Mapping, NamedTuple, Optional

import yaml

logger = logging.getLogger(__name__)


class _Entry(NamedTuple):
    payload: Dict[str, Any]
    mtime: Optional[float]
    loaded_at: float


_CACHE: Dict[str, _Entry] = {}
_LOCK = threading.Lock()


def _read_mapping(abs_path: str) -> Optional[Dict[str, Any]]:
    """Parsed YAML mapping, {} for an empty file, None when missing or unusable"""
    try:
        with open(abs_path, "r", encoding="utf-8") as fh:
            payload = yaml.safe_load(fh)
    except FileNotFoundError:
        logger.debug("YAML config %s not found", abs_path)
        return None
    except (OSError, yaml.YAMLError) as exc:
        logger.warning("Failed to load YAML %s: %s", abs_path, exc)
        return None

    if payload is None:
        return {}
    if not isinstance(payload, dict):
        logger.warning("YAML config %s is a %s, expected a mapping", abs_path, type(payload).__name__)
        return None
    return payload


def _checked_sections(payload: Dict[str, Any], sections: Mapping[str, type], abs_path: str) -> Dict[str, Any]:
    checked = {}
    for name, expected in sections.items():
        value = payload.get(name)
        if value is None:
            continue
        if not isinstance(value, expected):
            logger.warning(
                "Ignoring section '%s' in %s: expected %s, got %s",
                name, abs_path, expected.__name__, type(value).__name__,
            )
            continue
        checked[name] = value
    return checked


def load_yaml_cached(
    path: str,
    *,
    default: Optional[Dict[str, Any]] = None,
    ttl_seconds: Optional[int] = None,
    sections: Optional[Mapping[str, type]] = None,
) -> Dict[str, Any]:
    """
    Mapping loaded from ``path``, re-read after ``ttl_seconds`` or an mtime change.

    Args:
        default: returned when the file is missing, unreadable or not a mapping
        ttl_seconds: cache lifetime (``settings.config_cache_ttl_s`` if omitted)
        sections: expected type per top-level key; other keys are dropped

    Returns:
        A deep copy, so callers may mutate it freely.
    """
    from apps.core.config import settings

    ttl = ttl_seconds if ttl_seconds is not None else settings.config_cache_ttl_s
    abs_path = os.path.abspath(path)
    try:
        mtime = os.path.getmtime(abs_path)
    except OSError:
        mtime = None
    now = time.time()

    with _LOCK:
        entry = _CACHE.get(abs_path)
        if entry is None or entry.mtime != mtime or now - entry.loaded_at > ttl:
            payload = _read_mapping(abs_path)
            entry = _Entry(payload, mtime, now)
            _CACHE[abs_path] = entry

    if entry.payload is None:
        return copy.deepcopy(default or {})
    if sections is not None:
        return copy.deepcopy(_checked_sections(entry.payload, sections, abs_path))
    return copy.deepcopy(entry.payload)


def clear_yaml_cache() -> None:
    """Drop every cached payload."""
    with _LOCK:
        _CACHE.clear()
