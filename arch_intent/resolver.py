"""Narrows impacted domains down to concrete catalog components."""

from __future__ import annotations

import logging
from typing import List, Sequence, Tuple

from .config import ScoringConfig
from .models import (
    ComponentDescriptor,
    ComponentHypothesis,
    Confidence,
    ImpactRecord,
    ImpactType,
    OpenQuestion,
    QuestionKind,
)
from .ontology import CatalogSnapshot, ComponentCatalog, Ontology
from .text import tokenize

logger = logging.getLogger(__name__)

CHANGE_TEMPLATES = {
    ImpactType.CORE_CHANGE: "update {term} handling",
    ImpactType.UI_CHANGE: "update views for {term}",
    ImpactType.API_CHANGE: "extend API for {term}",
    ImpactType.SIDE_EFFECT: "publish {term} event",
    ImpactType.DEPENDENCY: "provide {term} to dependent domains",
    ImpactType.POSSIBLE: "review {term} handling",
}


def question_id(kind: QuestionKind, subject: str) -> str:
    return f"{kind.value}:{subject}"


def placeholder_name(domain: str) -> str:
    return f"unassigned:{domain}"


class ComponentResolver:
    """Maps one ImpactRecord onto the catalog.

    Every impacted domain yields at least one hypothesis; when the catalog has
    nothing for it, a speculative placeholder carries a HIGH question instead.
    """

    def __init__(self, ontology: Ontology, config: ScoringConfig | None = None):
        self.ontology = ontology
        self.config = config or ScoringConfig()

    def resolve(self, record: ImpactRecord, catalog: CatalogSnapshot | ComponentCatalog) -> List[ComponentHypothesis]:
        if record.rejected:
            return []
        snapshot = catalog.snapshot() if isinstance(catalog, ComponentCatalog) else catalog
        components = snapshot.in_domain(record.domain)
        if not components:
            return [self._placeholder(record)]

        priority = self._question_priority(record)
        hypotheses = []
        for component in components:
            questions: Tuple[OpenQuestion, ...] = ()
            if priority is not None:
                questions = (ownership_question(component, record, priority),)
            hypotheses.append(
                ComponentHypothesis(
                    component=component.name,
                    domain=component.domain,
                    change_kind=record.impact_type,
                    probable_changes=probable_changes(record, component),
                    open_questions=questions,
                )
            )
        logger.debug("Resolved %s to %d component(s)", record.domain, len(hypotheses))
        return hypotheses

    def _question_priority(self, record: ImpactRecord) -> Confidence | None:
        if record.ambiguous:
            return Confidence.HIGH
        if record.confidence == Confidence.HIGH:
            return None
        return record.confidence

    def _placeholder(self, record: ImpactRecord) -> ComponentHypothesis:
        domain = self.ontology.get(record.domain)
        name = placeholder_name(record.domain)
        known = list(domain.components)
        prompt = f"No catalog component is registered for {record.domain}. Which component owns this capability?"
        if known:
            prompt += f" Typical components: {', '.join(known)}."
        question = OpenQuestion(
            id=question_id(QuestionKind.OWNER, record.domain),
            priority=Confidence.HIGH,
            kind=QuestionKind.OWNER,
            subject=record.domain,
            prompt=prompt,
            options=tuple(known),
        )
        logger.debug("No catalog component for %s, emitting placeholder", record.domain)
        return ComponentHypothesis(
            component=name,
            domain=record.domain,
            change_kind=record.impact_type,
            probable_changes=probable_changes(record, None),
            open_questions=(question,),
            speculative=True,
        )


def ownership_question(component: ComponentDescriptor, record: ImpactRecord, priority: Confidence) -> OpenQuestion:
    if record.ambiguous:
        reason = "its domain is tied with another for ownership"
    else:
        reason = f"{record.domain} impact is only {record.confidence.value} confidence"
    return OpenQuestion(
        id=question_id(QuestionKind.OWNERSHIP, component.name),
        priority=priority,
        kind=QuestionKind.OWNERSHIP,
        subject=component.name,
        prompt=(
            f"Does {component.name} need a {record.impact_type.value} for this request ({reason})? "
            "Answer yes, no, or the name of the component that owns it."
        ),
        options=("yes", "no"),
    )


def probable_changes(record: ImpactRecord, component: ComponentDescriptor | None) -> Tuple[str, ...]:
    template = CHANGE_TEMPLATES[record.impact_type]
    terms: Sequence[str] = record.matched_triggers or (record.domain.lower(),)
    changes = [template.format(term=term) for term in terms]

    if component is not None:
        words = {word for term in terms for word in tokenize(term) if len(word) > 2}
        if record.impact_type in (ImpactType.API_CHANGE, ImpactType.CORE_CHANGE):
            changes.extend(f"extend {api}" for api in component.apis if _mentions(api, words))
        if record.impact_type in (ImpactType.SIDE_EFFECT, ImpactType.CORE_CHANGE):
            changes.extend(f"publish {event}" for event in component.publishes if _mentions(event, words))
    return tuple(dict.fromkeys(changes))


def _mentions(name: str, words: set) -> bool:
    lowered = name.lower()
    return any(word in lowered for word in words)
