#!/usr/bin/env python3
"""
Static vocabulary used to read free-text search requests.

The tables are built once per process and never mutated afterwards; the
parser and the search service receive a ``Lexicon`` instance so tests can
substitute their own vocabulary.
"""

import logging
from dataclasses import dataclass
from functools import lru_cache
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Iterable, Mapping, Optional, Tuple

from apps.core.config import settings
from apps.core.config_cache import load_yaml_cached

logger = logging.getLogger(__name__)


STOPWORDS = ("in", "at", "on", "to", "for", "with", "and", "the", "a", "of")

KNOWN_CITIES = (
    "denver", "new york", "boston", "austin", "nashville", "portland",
    "miami", "seattle", "san francisco", "chicago", "los angeles", "bengaluru",
)

# Order matters: the first group containing a token wins
CATEGORY_GROUPS = {
    "restaurants": ("restaurant", "restaurants", "steakhouse", "fine-dining", "seafood",
                    "bbq", "ramen", "cuban", "bakery", "cafe"),
    "cafes": ("cafe", "cafes", "bakery", "coffee"),
    "desserts": ("dessert", "desserts", "bakery"),
}

# Common misspellings (applied before any other matching)
CORRECTIONS = {
    "restourants": "restaurants",
    "restrants": "restaurants",
    "coffe": "coffee",
    "caffee": "cafe",
    "dessurt": "dessert",
    "nyc": "new york",
    "boson": "boston",
}

# Filter-level category -> subtype labels stored on Subject.type
CATEGORY_EXPANSION = {
    "restaurant": ("restaurant", "cafe", "brunch", "steakhouse", "fine-dining", "seafood",
                   "bbq", "ramen", "cuban"),
    "cafe": ("cafe",),
    "brunch": ("brunch",),
    "steakhouse": ("steakhouse",),
    "bakery": ("bakery",),
    "dessert": ("dessert",),
    "fastfood": ("fast-food",),
    "sushi": ("sushi",),
}


def _unique(items: Iterable[str]) -> Tuple[str, ...]:
    """Lowercase and de-duplicate while keeping first-seen order."""
    seen = []
    for item in items:
        value = str(item).strip().lower()
        if value and value not in seen:
            seen.append(value)
    return tuple(seen)


@dataclass(frozen=True)
class Lexicon:
    """Immutable lookup tables for query parsing and category expansion."""

    stopwords: FrozenSet[str]
    cities: FrozenSet[str]
    category_groups: Mapping[str, FrozenSet[str]]
    corrections: Mapping[str, str]
    category_expansion: Mapping[str, Tuple[str, ...]]

    def correct(self, token: str) -> str:
        return self.corrections.get(token, token)

    def is_city(self, token: str) -> bool:
        return token in self.cities

    def is_stopword(self, token: str) -> bool:
        return token in self.stopwords

    def category_for(self, token: str) -> Optional[str]:
        """Canonical name of the first category group listing ``token``."""
        for group, synonyms in self.category_groups.items():
            if token in synonyms:
                return group
        return None

    def expand_category(self, category: str) -> Tuple[str, ...]:
        """Subtype labels for a filter category, or the category itself."""
        return self.category_expansion.get(category, (category,))

    def stats(self) -> Dict[str, int]:
        return {
            "stopwords": len(self.stopwords),
            "cities": len(self.cities),
            "category_groups": len(self.category_groups),
            "corrections": len(self.corrections),
            "category_expansion": len(self.category_expansion),
        }


def build_lexicon(
    stopwords: Iterable[str] = STOPWORDS,
    cities: Iterable[str] = KNOWN_CITIES,
    category_groups: Mapping[str, Iterable[str]] = None,
    corrections: Mapping[str, str] = None,
    category_expansion: Mapping[str, Iterable[str]] = None,
) -> Lexicon:
    """Freeze plain Python tables into a ``Lexicon``."""
    category_groups = CATEGORY_GROUPS if category_groups is None else category_groups
    corrections = CORRECTIONS if corrections is None else corrections
    category_expansion = CATEGORY_EXPANSION if category_expansion is None else category_expansion

    return Lexicon(
        stopwords=frozenset(_unique(stopwords)),
        cities=frozenset(_unique(cities)),
        category_groups=MappingProxyType({
            group.strip().lower(): frozenset(_unique(synonyms))
            for group, synonyms in category_groups.items()
        }),
        corrections=MappingProxyType({
            wrong.strip().lower(): right.strip().lower()
            for wrong, right in corrections.items()
        }),
        category_expansion=MappingProxyType({
            category.strip().lower(): _unique(subtypes)
            for category, subtypes in category_expansion.items()
        }),
    )


DEFAULT_LEXICON = build_lexicon()


# YAML override sections and their expected shapes
LEXICON_SECTIONS = {
    "stopwords": list,
    "cities": list,
    "category_groups": dict,
    "corrections": dict,
    "category_expansion": dict,
}


def _merge_groups(base: Mapping[str, Iterable[str]], extra: Mapping[str, Any]) -> Dict[str, Tuple[str, ...]]:
    merged = {key: tuple(values) for key, values in base.items()}
    for key, values in extra.items():
        key = str(key).strip().lower()
        merged[key] = _unique([*merged.get(key, ()), *(values or [])])
    return merged


def load_lexicon(path: Optional[str] = None) -> Lexicon:
    """
    Built-in tables extended with the optional YAML overrides at ``path``.

    Recognised sections: ``stopwords`` and ``cities`` (lists, unioned),
    ``category_groups`` and ``category_expansion`` (mappings of lists,
    unioned per key), ``corrections`` (mapping, entries override).
    """
    path = path or settings.lexicon_path
    cfg = load_yaml_cached(path, default={}, sections=LEXICON_SECTIONS)
    if not cfg:
        return DEFAULT_LEXICON

    corrections = dict(CORRECTIONS)
    corrections.update({str(k): str(v) for k, v in cfg.get("corrections", {}).items() if v})

    lexicon = build_lexicon(
        stopwords=[*STOPWORDS, *(cfg.get("stopwords") or [])],
        cities=[*KNOWN_CITIES, *(cfg.get("cities") or [])],
        category_groups=_merge_groups(CATEGORY_GROUPS, cfg.get("category_groups", {})),
        corrections=corrections,
        category_expansion=_merge_groups(CATEGORY_EXPANSION, cfg.get("category_expansion", {})),
    )
    logger.info(f"Lexicon loaded with overrides from {path}: {lexicon.stats()}")
    return lexicon


@lru_cache(maxsize=1)
def get_lexicon() -> Lexicon:
    """Process-wide lexicon, built on first use."""
    return load_lexicon()
