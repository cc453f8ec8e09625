"""Weighted fuzzy ranking of hydrated agreements.

Pure-function module: NO database access. The caller hands over the freshly
hydrated collection and a query; an ``AgreementSearchIndex`` is built over it
for that single call and thrown away afterwards.

Keys and weights (higher wins ties between otherwise equal matches):
    - supplier name                 0.40
    - supplier organization name    0.35
    - customer name                 0.30
    - customer organization name    0.25
    - supplier warehouse name       0.10
    - customer warehouse name       0.10
    - material names                0.05
    - status                        0.05

Matching is case- and diacritic-insensitive and tolerates typos inside
partial substrings (difflib similarity over query-sized windows).
"""

from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass
from difflib import SequenceMatcher
from typing import Callable, Iterable

from supply_platform.domain.schemas import AgreementDetail

# ── Defaults ─────────────────────────────────────────────────────────────────

DEFAULT_THRESHOLD = 0.6
MIN_MATCH_CHAR_LENGTH = 2

_PUNCTUATION = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class SearchKey:
    name: str
    weight: float
    values: Callable[[AgreementDetail], Iterable[str | None]]


def _org_name(user) -> str | None:
    return user.organization.name if user.organization else None


SEARCH_KEYS: tuple[SearchKey, ...] = (
    SearchKey("supplier.name", 0.40, lambda a: [a.supplier.name]),
    SearchKey("supplier.organization.name", 0.35, lambda a: [_org_name(a.supplier)]),
    SearchKey("customer.name", 0.30, lambda a: [a.customer.name]),
    SearchKey("customer.organization.name", 0.25, lambda a: [_org_name(a.customer)]),
    SearchKey("supplier_warehouse.name", 0.10, lambda a: [a.supplier_warehouse.name]),
    SearchKey("customer_warehouse.name", 0.10, lambda a: [a.customer_warehouse.name]),
    SearchKey("materials.material.name", 0.05, lambda a: [m.material.name for m in a.materials]),
    SearchKey("status", 0.05, lambda a: [a.status]),
)


# ── Helpers ──────────────────────────────────────────────────────────────────

def normalize(text: str | None) -> str:
    """Lowercase, strip diacritics and punctuation, collapse whitespace."""
    if not text:
        return ""
    t = unicodedata.normalize("NFKD", text)
    t = "".join(ch for ch in t if not unicodedata.combining(ch))
    t = t.casefold()
    t = _PUNCTUATION.sub(" ", t)
    return _WHITESPACE.sub(" ", t).strip()


def similarity(query: str, value: str, min_match_length: int = MIN_MATCH_CHAR_LENGTH) -> float:
    """Similarity in [0, 1] between a normalized query and a normalized value.

    1.0 when the query occurs verbatim inside the value. Otherwise the best
    SequenceMatcher ratio between the query and every window of the value
    that has the query's length (or the whole value when it is shorter).
    Windows whose longest shared block is under ``min_match_length`` score 0.
    """
    if not query or not value:
        return 0.0
    if query in value:
        return 1.0

    width = len(query)
    if len(value) <= width:
        windows = [value]
    else:
        windows = [value[i:i + width] for i in range(len(value) - width + 1)]

    best = 0.0
    matcher = SequenceMatcher(autojunk=False)
    matcher.set_seq2(query)
    for window in windows:
        matcher.set_seq1(window)
        block = matcher.find_longest_match(0, len(window), 0, width)
        if block.size < min_match_length:
            continue
        ratio = matcher.ratio()
        if ratio > best:
            best = ratio
            if best == 1.0:
                break
    return best


# ── Index ────────────────────────────────────────────────────────────────────

class AgreementSearchIndex:
    """In-memory weighted index over one snapshot of hydrated agreements."""

    def __init__(
        self,
        agreements: list[AgreementDetail],
        threshold: float = DEFAULT_THRESHOLD,
        min_match_length: int = MIN_MATCH_CHAR_LENGTH,
        keys: tuple[SearchKey, ...] = SEARCH_KEYS,
    ):
        self.threshold = threshold
        self.min_match_length = min_match_length
        self.keys = keys
        self._entries = [
            (
                agreement,
                [
                    [normalized for normalized in map(normalize, key.values(agreement)) if normalized]
                    for key in keys
                ],
            )
            for agreement in agreements
        ]

    def score(self, query: str, field_values: list[list[str]]) -> float:
        """Weighted relevance of one indexed agreement for a normalized query."""
        total = 0.0
        for key, values in zip(self.keys, field_values):
            best = max(
                (similarity(query, value, self.min_match_length) for value in values),
                default=0.0,
            )
            if best >= self.threshold:
                total += key.weight * best
        return total

    def search(self, query: str) -> list[AgreementDetail]:
        """Agreements matching ``query``, most relevant first. [] when none match."""
        normalized = normalize(query)
        if len(normalized) < self.min_match_length:
            return []

        scored = []
        for position, (agreement, field_values) in enumerate(self._entries):
            relevance = self.score(normalized, field_values)
            if relevance > 0:
                scored.append((relevance, position, agreement))

        # Stable: equal relevance keeps collection order
        scored.sort(key=lambda item: (-item[0], item[1]))
        return [agreement for _, _, agreement in scored]
