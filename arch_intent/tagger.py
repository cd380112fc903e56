"""Vocabulary-driven business term extraction."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from .config import Lexicon
from .models import Tag, TagKind
from .ontology import Ontology
from .text import normalize_phrase, token_spans

logger = logging.getLogger(__name__)

QUALIFIER_WINDOW = 3
ACTION_WINDOW = 8


@dataclass
class _Match:
    term: str
    kind: TagKind
    category: Optional[str]
    first_token: int
    last_token: int
    start: int
    end: int


class Tagger:
    """Extracts Entity, Action and Qualifier tags from a change request.

    Matching is a greedy longest-phrase scan over normalized tokens, not a
    parse. Qualifiers and actions are linked to entities by token adjacency.
    """

    def __init__(self, ontology: Ontology, lexicon: Lexicon | None = None):
        self.ontology = ontology
        self.lexicon = lexicon or Lexicon()
        self._phrases: Dict[Tuple[str, ...], Tuple[TagKind, Optional[str]]] = {}
        self._max_len = 1

        for phrase in ontology.vocabulary():
            self._add(phrase, TagKind.ENTITY, None)
        for phrase in self.lexicon.qualifiers:
            self._add(phrase, TagKind.QUALIFIER, None)
        for phrase, category in self.lexicon.action_categories().items():
            self._add(phrase, TagKind.ACTION, category)

    def _add(self, phrase: str, kind: TagKind, category: Optional[str]) -> None:
        term = normalize_phrase(phrase)
        if not term:
            return
        key = tuple(term.split(" "))
        self._phrases[key] = (kind, category)
        self._max_len = max(self._max_len, len(key))

    def tag(self, text: str) -> List[Tag]:
        tokens = token_spans(text)
        matches = self._scan(tokens)
        tags = self._link(text, matches)
        logger.debug("Tagged %d terms from %d tokens", len(tags), len(tokens))
        return tags

    def _scan(self, tokens: List[Tuple[str, int, int]]) -> List[_Match]:
        matches: List[_Match] = []
        cursor = 0
        while cursor < len(tokens):
            found = None
            for length in range(min(self._max_len, len(tokens) - cursor), 0, -1):
                key = tuple(token for token, _, _ in tokens[cursor : cursor + length])
                if key in self._phrases:
                    found = (key, length)
                    break
            if found is None:
                cursor += 1
                continue

            key, length = found
            kind, category = self._phrases[key]
            last = cursor + length - 1
            matches.append(
                _Match(
                    term=" ".join(key),
                    kind=kind,
                    category=category,
                    first_token=cursor,
                    last_token=last,
                    start=tokens[cursor][1],
                    end=tokens[last][2],
                )
            )
            cursor += length
        return matches

    def _link(self, text: str, matches: List[_Match]) -> List[Tag]:
        entities = [match for match in matches if match.kind == TagKind.ENTITY]
        qualifier_targets: Dict[int, Optional[str]] = {}
        qualifiers_by_entity: Dict[int, List[str]] = {id(entity): [] for entity in entities}

        for match in matches:
            if match.kind != TagKind.QUALIFIER:
                continue
            entity = _nearest_entity(match, entities, QUALIFIER_WINDOW, QUALIFIER_WINDOW)
            qualifier_targets[id(match)] = entity.term if entity else None
            if entity is not None:
                qualifiers_by_entity[id(entity)].append(match.term)

        tags: List[Tag] = []
        for match in matches:
            target = None
            qualifiers: Tuple[str, ...] = ()
            if match.kind == TagKind.QUALIFIER:
                target = qualifier_targets[id(match)]
            elif match.kind == TagKind.ACTION:
                entity = _nearest_entity(match, entities, ACTION_WINDOW, 0)
                if entity is None:
                    entity = _nearest_entity(match, entities, 0, QUALIFIER_WINDOW)
                target = entity.term if entity else None
            else:
                qualifiers = tuple(qualifiers_by_entity[id(match)])

            tags.append(
                Tag(
                    text=text[match.start : match.end],
                    kind=match.kind,
                    term=match.term,
                    start=match.start,
                    end=match.end,
                    category=match.category,
                    qualifiers=qualifiers,
                    target=target,
                )
            )
        return tags


def _nearest_entity(
    anchor: _Match,
    entities: List[_Match],
    forward: int,
    backward: int,
) -> Optional[_Match]:
    best: Optional[_Match] = None
    best_distance = None
    for entity in entities:
        if entity.first_token > anchor.last_token:
            distance = entity.first_token - anchor.last_token
            if distance > forward:
                continue
            # Following entities win ties: modifiers usually precede the noun.
            rank = (distance, 0)
        elif entity.last_token < anchor.first_token:
            distance = anchor.first_token - entity.last_token
            if distance > backward:
                continue
            rank = (distance, 1)
        else:
            continue
        if best_distance is None or rank < best_distance:
            best, best_distance = entity, rank
    return best
