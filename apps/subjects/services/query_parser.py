#!/usr/bin/env python3
"""Tokenizer that turns a free-text request into query/type/city hints"""

import logging
from typing import List, Optional, Tuple

from apps.subjects.dto import ParsedQuery
from apps.subjects.services.lexicon import Lexicon, get_lexicon

logger = logging.getLogger(__name__)


class QueryParser:
    """Single-pass parser over whitespace tokens.

    City assignment is first-wins and consumes the token. Category
    assignment is last-wins and keeps the token in the remaining set.
    """

    def __init__(self, lexicon: Lexicon):
        self.lexicon = lexicon

    def tokenize(self, text: str) -> List[str]:
        """Lowercase and split on runs of whitespace (empty input -> [])"""
        return (text or "").lower().split()

    def parse(self, text: str) -> ParsedQuery:
        city: Optional[str] = None
        category: Optional[str] = None
        remaining: List[Tuple[str, Optional[str]]] = []

        for token in self.tokenize(text):
            token = self.lexicon.correct(token)

            # Only single tokens are compared, so "new york" is reachable via "nyc" only
            if city is None and self.lexicon.is_city(token):
                city = token
                continue

            group = self.lexicon.category_for(token)
            if group is not None:
                category = group

            remaining.append((token, group))

        # tokens that resolved to the final category count as the category token
        query_tokens = [
            token for token, group in remaining
            if token != city
            and token != category
            and (category is None or group != category)
            and not self.lexicon.is_stopword(token)
        ]

        return ParsedQuery(
            query=" ".join(query_tokens) if query_tokens else None,
            type=category,
            city=city,
        )


def create_query_parser(lexicon: Optional[Lexicon] = None) -> QueryParser:
    """Factory function to create QueryParser instance"""
    return QueryParser(lexicon or get_lexicon())
