"""Ranked structural search over the component catalog."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional

from .models import ComponentDescriptor
from .ontology import CatalogSnapshot, ComponentCatalog
from .text import normalize_term, tokenize

NAME_WEIGHT = 3
DOMAIN_WEIGHT = 2
FRAGMENT_WEIGHT = 1
MIN_TERM_LENGTH = 3


@dataclass(frozen=True)
class DiscoveryHit:
    descriptor: ComponentDescriptor
    score: int
    rank: int


class DiscoverySearch:
    """Scores catalog components against business-context terms.

    score = 3 x name-substring matches + 2 x domain match + 1 x API/event
    fragment matches. Equal scores keep catalog insertion order. An empty
    result means there is no discovery evidence, not an error.
    """

    def __init__(self, catalog: CatalogSnapshot | ComponentCatalog):
        self.catalog = catalog

    def discover(self, context_terms: Iterable[str], limit: Optional[int] = None) -> List[DiscoveryHit]:
        terms = _prepare_terms(context_terms)
        if not terms:
            return []

        snapshot = self.catalog.snapshot() if isinstance(self.catalog, ComponentCatalog) else self.catalog
        scored = []
        for position, component in enumerate(snapshot):
            score = _score(component, terms)
            if score > 0:
                scored.append((score, position, component))

        ranked = sorted(scored, key=lambda item: (-item[0], item[1]))
        if limit is not None:
            ranked = ranked[:limit]
        return [
            DiscoveryHit(descriptor=component, score=score, rank=idx + 1)
            for idx, (score, _, component) in enumerate(ranked)
        ]


def _prepare_terms(context_terms: Iterable[str]) -> List[str]:
    terms: List[str] = []
    for phrase in context_terms:
        for word in tokenize(phrase):
            for part in word.split("-"):
                term = normalize_term(part)
                if len(term) >= MIN_TERM_LENGTH and term not in terms:
                    terms.append(term)
    return terms


def _score(component: ComponentDescriptor, terms: List[str]) -> int:
    name = component.name.lower()
    domain = component.domain.lower()
    fragments = [fragment.lower() for fragment in component.apis + component.publishes + component.consumes]

    name_matches = sum(1 for term in terms if term in name)
    domain_match = 1 if any(term in domain for term in terms) else 0
    fragment_matches = sum(1 for term in terms if any(term in fragment for fragment in fragments))
    return NAME_WEIGHT * name_matches + DOMAIN_WEIGHT * domain_match + FRAGMENT_WEIGHT * fragment_matches
