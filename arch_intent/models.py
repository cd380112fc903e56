"""Domain models for the architectural-intent resolution engine."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Tuple


class TagKind(str, Enum):
    ENTITY = "Entity"
    ACTION = "Action"
    QUALIFIER = "Qualifier"


class ImpactType(str, Enum):
    CORE_CHANGE = "CoreChange"
    UI_CHANGE = "UIChange"
    API_CHANGE = "APIChange"
    SIDE_EFFECT = "SideEffect"
    DEPENDENCY = "Dependency"
    POSSIBLE = "Possible"


class Confidence(str, Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"

    @property
    def rank(self) -> int:
        return _CONFIDENCE_RANK[self]

    def at_least(self, floor: "Confidence") -> "Confidence":
        return self if self.rank >= floor.rank else floor


_CONFIDENCE_RANK = {Confidence.LOW: 0, Confidence.MEDIUM: 1, Confidence.HIGH: 2}


class ComponentType(str, Enum):
    BACKEND_SERVICE = "backend-service"
    FRONTEND_APP = "frontend-app"
    SHARED_LIBRARY = "shared-library"
    INTEGRATION = "integration"


class DomainRole(str, Enum):
    CORE = "core"
    FRONTEND = "frontend"
    INTEGRATION = "integration"


class QuestionKind(str, Enum):
    OWNERSHIP = "ownership"
    OWNER = "owner"
    TIE = "tie"
    EVENT_SCHEMA = "event-schema"
    API_CALL = "api-call"
    REPHRASE = "rephrase"


class QuestionState(str, Enum):
    OPEN = "Open"
    ANSWERED = "Answered"


class SessionState(str, Enum):
    OPEN = "Open"
    AWAITING_ANSWER = "AwaitingAnswer"
    RESOLVED = "Resolved"
    STALLED = "Stalled"
    ABANDONED = "Abandoned"


UNKNOWN_DOMAIN = "unknown"


@dataclass(frozen=True)
class Domain:
    """A business capability grouping with the vocabulary and entities it owns."""

    name: str
    responsibility: str = ""
    triggers: Dict[str, float] = field(default_factory=dict)
    entities: FrozenSet[str] = frozenset()
    components: Tuple[str, ...] = ()
    role: DomainRole = DomainRole.CORE


@dataclass(frozen=True)
class ComponentDescriptor:
    """A catalog entry: one deployable or packageable unit registered against a domain."""

    name: str
    domain: str
    type: ComponentType = ComponentType.BACKEND_SERVICE
    technology: Optional[str] = None
    apis: Tuple[str, ...] = ()
    publishes: Tuple[str, ...] = ()
    consumes: Tuple[str, ...] = ()
    speculative: bool = False


@dataclass(frozen=True)
class Tag:
    """A business term found in the change request.

    ``term`` is the normalized phrase used for matching. Entities list the
    qualifiers attached to them; qualifiers and actions point at the entity
    term they relate to through ``target``.
    """

    text: str
    kind: TagKind
    term: str
    start: int
    end: int
    category: Optional[str] = None
    qualifiers: Tuple[str, ...] = ()
    target: Optional[str] = None


@dataclass(frozen=True)
class ImpactRecord:
    domain: str
    impact_type: ImpactType
    confidence: Confidence
    score: float
    matched_triggers: Tuple[str, ...] = ()
    reasoning: str = ""
    rules: Tuple[str, ...] = ()
    ambiguous: bool = False
    rejected: bool = False


@dataclass(frozen=True)
class OpenQuestion:
    id: str
    priority: Confidence
    kind: QuestionKind
    subject: str
    prompt: str
    options: Tuple[str, ...] = ()
    state: QuestionState = QuestionState.OPEN
    answer: Optional[str] = None

    @property
    def is_open(self) -> bool:
        return self.state == QuestionState.OPEN

    @property
    def blocking(self) -> bool:
        return self.is_open and self.priority != Confidence.LOW


@dataclass(frozen=True)
class ComponentHypothesis:
    component: str
    domain: str
    change_kind: ImpactType
    probable_changes: Tuple[str, ...] = ()
    open_questions: Tuple[OpenQuestion, ...] = ()
    speculative: bool = False


@dataclass(frozen=True)
class DependencyEdge:
    """``source`` provides ``via`` (an event or API) that ``target`` relies on."""

    source: str
    target: str
    kind: str
    via: str


@dataclass(frozen=True)
class ImpactRow:
    domain: str
    impact_type: ImpactType
    confidence: Confidence
    components: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ResolutionEntry:
    question_id: str
    answer: Optional[str]
    outcome: str
    blocking_before: int
    blocking_after: int


@dataclass(frozen=True)
class RecordRevision:
    domain: str
    attribute: str
    before: str
    after: str
    question_id: str


@dataclass
class Hypothesis:
    """The engine's structured output, ready for an external renderer."""

    text: str
    state: SessionState
    impact_matrix: List[ImpactRow]
    components: List[ComponentHypothesis]
    edges: List[DependencyEdge]
    open_questions: List[OpenQuestion]
    blocking_questions: List[OpenQuestion] = field(default_factory=list)
    rejected_domains: List[str] = field(default_factory=list)
    resolution_log: List[ResolutionEntry] = field(default_factory=list)
    revisions: List[RecordRevision] = field(default_factory=list)

    @property
    def no_domains_matched(self) -> bool:
        return not self.impact_matrix and not self.rejected_domains

    def to_dict(self) -> Dict[str, object]:
        payload = _plain(asdict(self))
        payload["no_domains_matched"] = self.no_domains_matched
        payload["open_questions_note"] = "unresolved, non-blocking" if self.open_questions else ""
        return payload


def _plain(value):
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {key: _plain(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(item) for item in value]
    if isinstance(value, (set, frozenset)):
        return sorted(_plain(item) for item in value)
    return value
