"""Tokenization and term normalization shared by the tagger, ontology and discovery."""

from __future__ import annotations

import re
from typing import List, Tuple

TOKEN_PATTERN = re.compile(r"[A-Za-z0-9]+(?:[-'][A-Za-z0-9]+)*")

# Endings that look plural but are not.
_KEEP_S = ("ss", "us", "is", "ous")


def tokenize(text: str) -> List[str]:
    return [normalize_term(token) for token in TOKEN_PATTERN.findall(text)]


def token_spans(text: str) -> List[Tuple[str, int, int]]:
    """Returns (normalized token, start, end) for every word in ``text``."""

    return [(normalize_term(match.group(0)), match.start(), match.end()) for match in TOKEN_PATTERN.finditer(text)]


def normalize_term(word: str) -> str:
    term = word.lower()
    if term.endswith("'s"):
        term = term[:-2]
    if len(term) > 4 and term.endswith("ies"):
        return term[:-3] + "y"
    if len(term) > 4 and term.endswith(("ses", "xes", "ches", "shes")):
        return term[:-2]
    if len(term) > 3 and term.endswith("s") and not term.endswith(_KEEP_S):
        return term[:-1]
    return term


def normalize_phrase(phrase: str) -> str:
    return " ".join(tokenize(phrase))
