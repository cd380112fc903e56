"""Tunable scoring parameters and the tagger's action/qualifier lexicon."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, FrozenSet

from .models import Confidence

COMMUNICATION = "communication"
PRESENTATION = "presentation"
MUTATION = "mutation"


@dataclass(frozen=True)
class ScoringConfig:
    """Weights and thresholds of the domain scorer.

    The defaults are illustrative; deployments override them through the
    ``scoring`` section of the knowledge base document.
    """

    high_threshold: float = 2.0
    ownership_bonus: float = 2.0
    default_trigger_weight: float = 1.0
    rule_floor: Confidence = Confidence.MEDIUM
    dependency_confidence: Confidence = Confidence.LOW
    max_suggestions: int = 5

    def __post_init__(self) -> None:
        if self.high_threshold <= 0:
            raise ValueError("high_threshold must be positive")
        if self.ownership_bonus < 0 or self.default_trigger_weight < 0:
            raise ValueError("weights must be non-negative")
        if self.max_suggestions < 1:
            raise ValueError("max_suggestions must be at least 1")


DEFAULT_COMMUNICATION_ACTIONS = frozenset(
    {"notify", "publish", "broadcast", "escalate", "alert", "email", "send", "emit"}
)
DEFAULT_PRESENTATION_ACTIONS = frozenset(
    {"show", "display", "render", "view", "list", "highlight", "present", "visualize"}
)
DEFAULT_MUTATION_ACTIONS = frozenset(
    {
        "submit",
        "create",
        "update",
        "delete",
        "remove",
        "approve",
        "reject",
        "cancel",
        "assign",
        "close",
        "open",
        "register",
        "refund",
        "charge",
        "calculate",
        "track",
        "export",
        "import",
    }
)
DEFAULT_QUALIFIERS = frozenset(
    {
        "premium",
        "high-value",
        "vip",
        "urgent",
        "priority",
        "assigned",
        "new",
        "existing",
        "active",
        "inactive",
        "overdue",
        "enterprise",
        "recurring",
        "failed",
        "pending",
    }
)


@dataclass(frozen=True)
class Lexicon:
    """Closed vocabularies the tagger recognizes beyond the ontology's own terms."""

    communication_actions: FrozenSet[str] = DEFAULT_COMMUNICATION_ACTIONS
    presentation_actions: FrozenSet[str] = DEFAULT_PRESENTATION_ACTIONS
    mutation_actions: FrozenSet[str] = DEFAULT_MUTATION_ACTIONS
    qualifiers: FrozenSet[str] = DEFAULT_QUALIFIERS

    def action_categories(self) -> Dict[str, str]:
        categories: Dict[str, str] = {}
        # Later entries win: communication and presentation outrank plain mutations.
        for category, words in (
            (MUTATION, self.mutation_actions),
            (PRESENTATION, self.presentation_actions),
            (COMMUNICATION, self.communication_actions),
        ):
            for word in words:
                categories[word] = category
        return categories
