"""Pull-based refinement dialogue over one analysis run."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Dict, List, Optional, Sequence

from .assembler import HypothesisAssembler
from .config import ScoringConfig
from .discovery import DiscoveryHit, DiscoverySearch
from .models import (
    UNKNOWN_DOMAIN,
    ComponentDescriptor,
    ComponentHypothesis,
    ComponentType,
    Confidence,
    Hypothesis,
    ImpactRecord,
    ImpactType,
    OpenQuestion,
    QuestionKind,
    QuestionState,
    RecordRevision,
    ResolutionEntry,
    SessionState,
    Tag,
)
from .ontology import CatalogSnapshot, Ontology
from .resolver import probable_changes, question_id

logger = logging.getLogger(__name__)

YES = {"yes", "y", "confirm", "confirmed", "true"}
NO = {"no", "n", "none", "reject", "rejected", "false"}
UNSURE = {"", "?", "unsure", "unknown", "not sure", "maybe", "skip", "dunno"}

INPUT_EMPTY_ID = question_id(QuestionKind.REPHRASE, "request")
INPUT_EMPTY_PROMPT = "Could not identify any business domain; please rephrase."

_UNRECOGNIZED = "unrecognized"


class RefinementSession:
    """State machine driving one change request to a resolved hypothesis.

    Exactly one question is dispatched at a time. Every well-formed answer
    closes the dispatched question and only ever spawns LOW follow-ups, so
    the count of open HIGH and MEDIUM questions strictly decreases. An answer
    that fails to reduce it moves the session to ``Stalled``.
    """

    def __init__(
        self,
        text: str,
        tags: Sequence[Tag],
        records: Sequence[ImpactRecord],
        hypotheses: Sequence[ComponentHypothesis],
        ontology: Ontology,
        catalog: CatalogSnapshot,
        config: ScoringConfig | None = None,
    ):
        self.text = text
        self.tags = list(tags)
        self.ontology = ontology
        self.config = config or ScoringConfig()
        self._catalog = catalog
        self._overlay: Dict[str, ComponentDescriptor] = {}
        self._records: Dict[str, ImpactRecord] = {record.domain: record for record in records}
        self._hypotheses: Dict[str, ComponentHypothesis] = {}
        self._origin: Dict[str, str] = {}
        self._rejected_components: List[str] = []
        self._questions: Dict[str, OpenQuestion] = {}
        self._question_component: Dict[str, str] = {}
        self._dispatched: Optional[str] = None
        self.log: List[ResolutionEntry] = []
        self.revisions: List[RecordRevision] = []

        tied = [record.domain for record in records if record.ambiguous]
        if len(tied) > 1:
            self._add_question(
                OpenQuestion(
                    id=question_id(QuestionKind.TIE, "|".join(tied)),
                    priority=Confidence.HIGH,
                    kind=QuestionKind.TIE,
                    subject="|".join(tied),
                    prompt=(
                        f"{' and '.join(tied)} match this request with equal evidence. "
                        "Which domain owns the change?"
                    ),
                    options=tuple(tied),
                )
            )

        for hypothesis in hypotheses:
            self._hypotheses[hypothesis.component] = hypothesis
            self._origin[hypothesis.component] = hypothesis.domain
            for question in hypothesis.open_questions:
                self._add_question(question, hypothesis.component)

        if not self._records:
            self._add_question(
                OpenQuestion(
                    id=INPUT_EMPTY_ID,
                    priority=Confidence.LOW,
                    kind=QuestionKind.REPHRASE,
                    subject="request",
                    prompt=INPUT_EMPTY_PROMPT,
                )
            )

        self.state = self._settled_state()
        logger.info(
            "Session opened with %d domain(s), %d question(s), state=%s",
            len(self._records),
            len(self._questions),
            self.state.value,
        )

    # ------------------------------------------------------------------
    # read side

    @property
    def records(self) -> List[ImpactRecord]:
        return list(self._records.values())

    @property
    def questions(self) -> List[OpenQuestion]:
        return list(self._questions.values())

    @property
    def hypotheses(self) -> List[ComponentHypothesis]:
        return [self._with_questions(hypothesis) for hypothesis in self._hypotheses.values()]

    @property
    def rejected_domains(self) -> List[str]:
        return [record.domain for record in self._records.values() if record.rejected]

    @property
    def dispatched(self) -> Optional[OpenQuestion]:
        return self._questions[self._dispatched] if self._dispatched else None

    def record(self, domain: str) -> ImpactRecord:
        if domain not in self._records:
            raise KeyError(f"Domain not impacted: {domain}")
        return self._records[domain]

    def question(self, qid: str) -> OpenQuestion:
        if qid not in self._questions:
            raise KeyError(f"Question not found: {qid}")
        return self._questions[qid]

    def hypotheses_for(self, domain: str) -> List[ComponentHypothesis]:
        return [
            self._with_questions(hypothesis)
            for name, hypothesis in self._hypotheses.items()
            if self._origin[name] == domain
        ]

    def descriptor(self, name: str) -> Optional[ComponentDescriptor]:
        if name in self._overlay:
            return self._overlay[name]
        return self._catalog.get(name)

    def catalog_view(self) -> CatalogSnapshot:
        view = self._catalog
        for descriptor in self._overlay.values():
            view = view.with_component(descriptor)
        return view

    def blocking_count(self) -> int:
        return sum(1 for question in self._questions.values() if question.blocking)

    def step_bound(self) -> int:
        """Upper bound on answers needed to settle every question created so far."""

        return len(self._questions)

    # ------------------------------------------------------------------
    # dialogue

    def next_question(self, include_low: bool = False) -> Optional[OpenQuestion]:
        self._ensure_active()
        if self.state == SessionState.AWAITING_ANSWER and self._dispatched:
            return self._questions[self._dispatched]

        candidates = [
            (position, question)
            for position, question in enumerate(self._questions.values())
            if question.is_open and (include_low or question.blocking)
        ]
        if not candidates:
            self.state = self._settled_state()
            return None

        _, chosen = min(candidates, key=lambda item: (-item[1].priority.rank, item[0]))
        self._dispatched = chosen.id
        self.state = SessionState.AWAITING_ANSWER
        logger.debug("Dispatched %s (%s)", chosen.id, chosen.priority.value)
        return chosen

    def answer(self, qid: str, value: str) -> SessionState:
        self._ensure_active()
        question = self.question(qid)
        if not question.is_open:
            raise RuntimeError(f"Question {qid} is already answered")
        if self._dispatched != qid:
            raise RuntimeError(f"Question {qid} is not awaiting an answer")

        before = self.blocking_count()
        answer = (value or "").strip()
        handler = {
            QuestionKind.OWNERSHIP: self._answer_ownership,
            QuestionKind.OWNER: self._answer_owner,
            QuestionKind.TIE: self._answer_tie,
            QuestionKind.EVENT_SCHEMA: self._answer_event_schema,
            QuestionKind.API_CALL: self._answer_api_call,
            QuestionKind.REPHRASE: self._answer_rephrase,
        }[question.kind]
        outcome = handler(question, answer)
        after = self.blocking_count()
        self._dispatched = None

        if question.priority != Confidence.LOW and after >= before:
            self.state = SessionState.STALLED
            logger.warning("Answer %r to %s did not reduce open questions, session stalled", answer, qid)
        else:
            self.state = self._settled_state()

        self.log.append(ResolutionEntry(qid, answer, outcome, before, after))
        logger.info("Answered %s with %r: %s (blocking %d -> %d)", qid, answer, outcome, before, after)
        return self.state

    def override(self, qid: str, accept: bool = True) -> SessionState:
        """Manual decision for a question, used to leave a stalled session.

        ``accept=False`` rejects the subject: the component, the placeholder
        domain, or for a tie every tied domain.
        """

        self._ensure_active()
        question = self.question(qid)
        if not question.is_open:
            raise RuntimeError(f"Question {qid} is already answered")

        before = self.blocking_count()
        if question.kind == QuestionKind.OWNERSHIP:
            outcome = self._confirm_component(question, spawn=False) if accept else self._reject_component(question)
        elif question.kind == QuestionKind.OWNER:
            outcome = self._accept_placeholder(question) if accept else self._reject_domain(question)
        elif question.kind == QuestionKind.TIE:
            outcome = self._share_ownership(question) if accept else self._reject_tie(question)
        else:
            self._close(question, "override")
            outcome = "closed by override"

        # The override may also have closed the dispatched question.
        if self._dispatched and not self._questions[self._dispatched].is_open:
            self._dispatched = None
        after = self.blocking_count()
        self.state = self._settled_state()
        self.log.append(ResolutionEntry(qid, "override" if accept else "override-reject", outcome, before, after))
        logger.info("Override on %s: %s", qid, outcome)
        return self.state

    def suggest(self, qid: str, limit: Optional[int] = None) -> List[DiscoveryHit]:
        """Discovery evidence for a question; empty means ask the caller directly."""

        question = self.question(qid)
        terms: List[str] = []
        if question.kind == QuestionKind.TIE:
            domains = question.options
        else:
            domain = self._question_domain(question)
            domains = (domain,) if domain else ()
        for domain in domains:
            terms.append(domain)
            terms.extend(self._records[domain].matched_triggers if domain in self._records else ())
        if not terms:
            terms = [tag.term for tag in self.tags]
        search = DiscoverySearch(self.catalog_view())
        return search.discover(terms, limit=limit or self.config.max_suggestions)

    def abandon(self) -> None:
        """Drops the session; it holds no external resources."""

        logger.info("Session abandoned in state %s", self.state.value)
        self.state = SessionState.ABANDONED
        self._dispatched = None

    def snapshot(self) -> Hypothesis:
        return HypothesisAssembler().assemble(self)

    # ------------------------------------------------------------------
    # answer handlers

    def _answer_ownership(self, question: OpenQuestion, answer: str) -> str:
        lowered = answer.lower()
        if lowered in UNSURE:
            return _UNRECOGNIZED
        if lowered in YES:
            return self._confirm_component(question, spawn=True, answer=answer)
        if lowered in NO:
            return self._reject_component(question, answer=answer)
        return self._reassign(question, answer)

    def _answer_owner(self, question: OpenQuestion, answer: str) -> str:
        lowered = answer.lower()
        if lowered in UNSURE or lowered in YES:
            return _UNRECOGNIZED
        if lowered in NO:
            return self._reject_domain(question, answer=answer)
        return self._reassign(question, answer)

    def _answer_tie(self, question: OpenQuestion, answer: str) -> str:
        chosen = next(
            (
                option
                for option in question.options
                if option.lower() == answer.lower() and not self._records[option].rejected
            ),
            None,
        )
        if chosen is None:
            return _UNRECOGNIZED
        self._settle_tie(question, chosen)
        return f"{chosen} owns the change"

    def _answer_event_schema(self, question: OpenQuestion, answer: str) -> str:
        if answer.lower() in UNSURE:
            return _UNRECOGNIZED
        name = question.subject
        descriptor = self._descriptor_or_speculative(name)
        if answer not in descriptor.publishes:
            self._overlay[name] = replace(descriptor, publishes=descriptor.publishes + (answer,))
        self._add_changes(name, (f"publish {answer}",))
        self._close(question, answer)
        return f"{name} publishes {answer}"

    def _answer_api_call(self, question: OpenQuestion, answer: str) -> str:
        if answer.lower() in UNSURE:
            return _UNRECOGNIZED
        name = question.subject
        descriptor = self._descriptor_or_speculative(name)
        if answer not in descriptor.apis:
            self._overlay[name] = replace(descriptor, apis=descriptor.apis + (answer,))
        callers = self._primary_components()
        for caller in callers:
            self._add_changes(caller, (f"call {answer}",))
        self._close(question, answer)
        return f"{', '.join(callers) or 'no caller'} calls {answer}"

    def _answer_rephrase(self, question: OpenQuestion, answer: str) -> str:
        self._close(question, answer)
        return "rephrase noted"

    # ------------------------------------------------------------------
    # mutations

    def _confirm_component(self, question: OpenQuestion, spawn: bool, answer: str = "override") -> str:
        name = question.subject
        domain = self._origin.get(name)
        record = self._records.get(domain) if domain else None
        self._close(question, answer)
        if record is None:
            return f"{name} confirmed"
        if record.ambiguous:
            tie = self._open_tie()
            if tie is not None:
                self._settle_tie(tie, record.domain)
                return f"{name} confirmed, {record.domain} owns the change"
        self._escalate(record, question.id)
        if spawn:
            self._spawn_follow_up(name, record)
        return f"{name} confirmed"

    def _reject_component(self, question: OpenQuestion, answer: str = "override-reject") -> str:
        name = question.subject
        domain = self._origin.get(name)
        self._close(question, answer)
        self._drop_hypothesis(name)
        if domain is None or domain not in self._records:
            return f"{name} rejected"

        remaining = [component for component, origin in self._origin.items() if origin == domain]
        if remaining:
            return f"{name} rejected"

        record = self._records[domain]
        if record.ambiguous:
            self._leave_tie(domain, question.id)
        else:
            self._update_record(domain, question.id, rejected=True)
        return f"{name} rejected, {domain} has no remaining components"

    def _reassign(self, question: OpenQuestion, name: str) -> str:
        previous = question.subject if question.kind == QuestionKind.OWNERSHIP else self._placeholder_for(question)
        domain = self._origin.get(previous) if previous else question.subject
        record = self._records.get(domain) if domain else None
        self._close(question, name)

        descriptor = self.descriptor(name)
        speculative = descriptor is None or descriptor.speculative
        if descriptor is None:
            descriptor = ComponentDescriptor(name=name, domain=UNKNOWN_DOMAIN, speculative=True)
            self._overlay[name] = descriptor
            logger.warning("Answer references unknown component %r, added as speculative", name)

        if previous:
            self._drop_hypothesis(previous)
        if record is not None and name not in self._hypotheses:
            self._hypotheses[name] = ComponentHypothesis(
                component=name,
                domain=descriptor.domain,
                change_kind=record.impact_type,
                probable_changes=probable_changes(record, descriptor),
                speculative=speculative,
            )
            self._origin[name] = record.domain
        if record is not None:
            if record.ambiguous:
                tie = self._open_tie()
                if tie is not None:
                    self._settle_tie(tie, record.domain)
            self._escalate(record, question.id)
        return f"reassigned to {name}" + (" (speculative)" if speculative else "")

    def _reject_domain(self, question: OpenQuestion, answer: str = "override-reject") -> str:
        domain = question.subject
        self._close(question, answer)
        placeholder = self._placeholder_for(question)
        if placeholder:
            self._drop_hypothesis(placeholder)
        if domain in self._records:
            if self._records[domain].ambiguous:
                self._leave_tie(domain, question.id)
            else:
                self._update_record(domain, question.id, rejected=True)
        return f"{domain} rejected"

    def _accept_placeholder(self, question: OpenQuestion) -> str:
        domain = question.subject
        self._close(question, "override")
        if domain in self._records:
            self._escalate(self._records[domain], question.id)
        return f"{domain} kept with a speculative component"

    def _settle_tie(self, tie: OpenQuestion, owner: str) -> None:
        self._close(tie, owner)
        for domain in tie.options:
            record = self._records.get(domain)
            if record is None or record.rejected:
                continue
            if domain == owner:
                self._update_record(domain, tie.id, ambiguous=False, impact_type=ImpactType.CORE_CHANGE, confidence=Confidence.HIGH)
            else:
                self._update_record(domain, tie.id, ambiguous=False, impact_type=ImpactType.DEPENDENCY)
                self._retype_hypotheses(domain, ImpactType.DEPENDENCY)
            self._close_component_questions(domain, f"settled: {owner}")

    def _share_ownership(self, tie: OpenQuestion) -> str:
        self._close(tie, "override")
        for domain in tie.options:
            if domain in self._records and not self._records[domain].rejected:
                self._update_record(domain, tie.id, ambiguous=False)
                self._close_component_questions(domain, "settled: shared ownership")
        return "ownership shared by " + ", ".join(tie.options)

    def _reject_tie(self, tie: OpenQuestion) -> str:
        self._close(tie, "no owner")
        rejected = []
        for domain in tie.options:
            if domain not in self._records or self._records[domain].rejected:
                continue
            for name in [component for component, origin in self._origin.items() if origin == domain]:
                self._drop_hypothesis(name)
            self._update_record(domain, tie.id, rejected=True, ambiguous=False)
            rejected.append(domain)
        return "ownership rejected for " + (", ".join(rejected) or "no domain")

    def _leave_tie(self, domain: str, qid: str) -> None:
        self._update_record(domain, qid, rejected=True, ambiguous=False)
        tie = self._open_tie()
        if tie is None:
            return
        remaining = [option for option in tie.options if not self._records[option].rejected]
        if len(remaining) == 1:
            self._settle_tie(tie, remaining[0])
        elif not remaining:
            self._close(tie, "no owner")

    def _spawn_follow_up(self, name: str, record: ImpactRecord) -> None:
        descriptor = self.descriptor(name)
        if record.impact_type == ImpactType.SIDE_EFFECT:
            self._add_question(
                OpenQuestion(
                    id=question_id(QuestionKind.EVENT_SCHEMA, name),
                    priority=Confidence.LOW,
                    kind=QuestionKind.EVENT_SCHEMA,
                    subject=name,
                    prompt=f"Which event does {name} publish for this change?",
                    options=descriptor.publishes if descriptor else (),
                ),
                name,
            )
        elif record.impact_type == ImpactType.DEPENDENCY and descriptor is not None and descriptor.apis:
            self._add_question(
                OpenQuestion(
                    id=question_id(QuestionKind.API_CALL, name),
                    priority=Confidence.LOW,
                    kind=QuestionKind.API_CALL,
                    subject=name,
                    prompt=f"Which API of {name} will the owning domain call?",
                    options=descriptor.apis,
                ),
                name,
            )

    def _escalate(self, record: ImpactRecord, qid: str) -> None:
        current = self._records[record.domain]
        if current.confidence != Confidence.HIGH or current.rejected:
            self._update_record(record.domain, qid, confidence=Confidence.HIGH, rejected=False)

    def _update_record(self, domain: str, qid: str, **changes) -> None:
        current = self._records[domain]
        updated = replace(current, **changes)
        for attribute in changes:
            before, after = getattr(current, attribute), getattr(updated, attribute)
            if before != after:
                self.revisions.append(RecordRevision(domain, attribute, _label(before), _label(after), qid))
                logger.info("%s.%s revised %s -> %s by %s", domain, attribute, _label(before), _label(after), qid)
        self._records[domain] = updated

    def _retype_hypotheses(self, domain: str, impact_type: ImpactType) -> None:
        record = self._records[domain]
        for name, origin in self._origin.items():
            if origin != domain:
                continue
            hypothesis = self._hypotheses[name]
            self._hypotheses[name] = replace(
                hypothesis,
                change_kind=impact_type,
                probable_changes=probable_changes(record, self.descriptor(name)),
            )

    def _add_changes(self, name: str, changes: Sequence[str]) -> None:
        hypothesis = self._hypotheses.get(name)
        if hypothesis is None:
            return
        merged = tuple(dict.fromkeys(hypothesis.probable_changes + tuple(changes)))
        self._hypotheses[name] = replace(hypothesis, probable_changes=merged)

    def _drop_hypothesis(self, name: str) -> None:
        if name in self._hypotheses:
            del self._hypotheses[name]
            del self._origin[name]
            self._rejected_components.append(name)
        for qid, component in self._question_component.items():
            if component == name and self._questions[qid].is_open:
                self._close(self._questions[qid], "component dropped")

    def _close_component_questions(self, domain: str, answer: str) -> None:
        for qid, component in list(self._question_component.items()):
            if self._origin.get(component) == domain and self._questions[qid].is_open:
                self._close(self._questions[qid], answer)

    def _close(self, question: OpenQuestion, answer: str) -> None:
        self._questions[question.id] = replace(
            self._questions[question.id], state=QuestionState.ANSWERED, answer=answer
        )

    def _add_question(self, question: OpenQuestion, component: Optional[str] = None) -> None:
        if question.id in self._questions:
            return
        self._questions[question.id] = question
        if component is not None:
            self._question_component[question.id] = component

    # ------------------------------------------------------------------
    # helpers

    def _descriptor_or_speculative(self, name: str) -> ComponentDescriptor:
        descriptor = self.descriptor(name)
        if descriptor is None:
            hypothesis = self._hypotheses.get(name)
            descriptor = ComponentDescriptor(
                name=name,
                domain=hypothesis.domain if hypothesis else UNKNOWN_DOMAIN,
                type=ComponentType.INTEGRATION,
                speculative=True,
            )
        return descriptor

    def _primary_components(self) -> List[str]:
        owners = [
            record.domain
            for record in self._records.values()
            if record.impact_type == ImpactType.CORE_CHANGE
            and record.confidence == Confidence.HIGH
            and not record.rejected
            and not record.ambiguous
        ]
        return [name for name, origin in self._origin.items() if origin in owners]

    def _open_tie(self) -> Optional[OpenQuestion]:
        for question in self._questions.values():
            if question.kind == QuestionKind.TIE and question.is_open:
                return question
        return None

    def _placeholder_for(self, question: OpenQuestion) -> Optional[str]:
        return self._question_component.get(question.id)

    def _question_domain(self, question: OpenQuestion) -> Optional[str]:
        if question.kind == QuestionKind.OWNER:
            return question.subject
        component = self._question_component.get(question.id, question.subject)
        return self._origin.get(component)

    def _with_questions(self, hypothesis: ComponentHypothesis) -> ComponentHypothesis:
        questions = tuple(
            self._questions[qid]
            for qid, component in self._question_component.items()
            if component == hypothesis.component
        )
        return replace(hypothesis, open_questions=questions)

    def _settled_state(self) -> SessionState:
        return SessionState.OPEN if self.blocking_count() else SessionState.RESOLVED

    def _ensure_active(self) -> None:
        if self.state == SessionState.ABANDONED:
            raise RuntimeError("Session was abandoned")


def _label(value) -> str:
    return value.value if hasattr(value, "value") else str(value)
