import pytest

from arch_intent import Confidence, ImpactType, QuestionKind, SessionState

from conftest import (
    DEPENDENCY_TEXT,
    E2E_TEXT,
    PLACEHOLDER_TEXT,
    SIDE_EFFECT_TEXT,
    TIE_TEXT,
    WEAK_TEXT,
)

TIE_ID = "tie:Orders|Billing"


def test_fully_confident_request_resolves_without_questions(engine):
    session = engine.analyze(E2E_TEXT)

    assert session.state == SessionState.RESOLVED
    assert session.next_question() is None
    assert session.questions == []


def test_tie_is_asked_first_and_never_auto_resolved(engine):
    session = engine.analyze(TIE_TEXT)

    assert session.state == SessionState.OPEN
    question = session.next_question()
    assert question.id == TIE_ID
    assert question.priority == Confidence.HIGH
    assert question.options == ("Orders", "Billing")
    assert session.state == SessionState.AWAITING_ANSWER

    assert session.answer(TIE_ID, "Orders") == SessionState.RESOLVED
    assert session.record("Orders").impact_type == ImpactType.CORE_CHANGE
    assert session.record("Billing").impact_type == ImpactType.DEPENDENCY
    assert {h.change_kind for h in session.hypotheses_for("Billing")} == {ImpactType.DEPENDENCY}
    assert not any(record.ambiguous for record in session.records)


def test_different_answer_after_stall_continues(engine):
    session = engine.analyze(TIE_TEXT)
    session.next_question()
    session.answer(TIE_ID, "maybe")
    assert session.state == SessionState.STALLED

    question = session.next_question()
    assert question.id == TIE_ID
    session.answer(TIE_ID, "Billing")

    assert session.state == SessionState.RESOLVED
    assert session.record("Orders").impact_type == ImpactType.DEPENDENCY


def test_only_the_dispatched_question_can_be_answered(engine):
    session = engine.analyze(TIE_TEXT)
    dispatched = session.next_question()

    assert session.next_question() is dispatched
    with pytest.raises(RuntimeError):
        session.answer("ownership:order-service", "yes")
    with pytest.raises(KeyError):
        session.answer("ownership:unknown", "yes")


def test_unrecognized_answer_stalls_and_override_recovers(engine):
    session = engine.analyze(TIE_TEXT)
    session.next_question()

    assert session.answer(TIE_ID, "not sure") == SessionState.STALLED
    assert session.question(TIE_ID).is_open
    assert session.log[-1].outcome == "unrecognized"

    assert session.override(TIE_ID) == SessionState.RESOLVED
    assert all(record.confidence == Confidence.HIGH for record in session.records)
    assert not any(record.ambiguous for record in session.records)


def test_medium_questions_escalate_or_reject(engine):
    session = engine.analyze(WEAK_TEXT)
    assert session.blocking_count() == 2

    first = session.next_question()
    assert first.id == "ownership:order-service"
    assert session.answer(first.id, "yes") == SessionState.OPEN
    assert session.record("Orders").confidence == Confidence.HIGH

    second = session.next_question()
    assert second.id == "ownership:fulfillment-service"
    assert session.answer(second.id, "no") == SessionState.RESOLVED

    hypothesis = session.snapshot()
    assert [c.component for c in hypothesis.components] == ["order-service"]
    assert hypothesis.impact_matrix[0].components == ("order-service",)
    revision = hypothesis.revisions[0]
    assert (revision.attribute, revision.before, revision.after) == ("confidence", "MEDIUM", "HIGH")


def test_rejecting_every_component_rejects_the_domain(engine):
    session = engine.analyze(WEAK_TEXT)
    for _ in range(2):
        question = session.next_question()
        session.answer(question.id, "no")

    assert session.state == SessionState.RESOLVED
    assert session.rejected_domains == ["Orders"]
    hypothesis = session.snapshot()
    assert hypothesis.impact_matrix == []
    assert not hypothesis.no_domains_matched


def test_unknown_component_answer_becomes_speculative_entry(engine, kb):
    session = engine.analyze(WEAK_TEXT)
    question = session.next_question()

    session.answer(question.id, "checkout-service")

    descriptor = session.descriptor("checkout-service")
    assert descriptor.speculative
    assert descriptor.domain == "unknown"
    assert "checkout-service" not in kb.catalog
    (hypothesis,) = [h for h in session.hypotheses if h.component == "checkout-service"]
    assert hypothesis.speculative
    assert session.record("Orders").confidence == Confidence.HIGH
    assert session.state == SessionState.OPEN


def test_placeholder_owner_question(engine):
    session = engine.analyze(PLACEHOLDER_TEXT)
    question = session.next_question()

    assert question.kind == QuestionKind.OWNER
    assert session.suggest(question.id) == []

    session.answer(question.id, "reporting-service")

    assert session.state == SessionState.RESOLVED
    assert [h.component for h in session.hypotheses_for("Analytics & Reporting")] == ["reporting-service"]
    assert session.descriptor("reporting-service").speculative


def test_confirming_integration_component_spawns_low_follow_up(engine):
    session = engine.analyze(SIDE_EFFECT_TEXT)
    question = session.next_question()
    assert question.id == "ownership:notification-service"
    assert question.priority == Confidence.MEDIUM

    assert session.answer(question.id, "yes") == SessionState.RESOLVED
    assert session.next_question() is None

    follow_up = session.next_question(include_low=True)
    assert follow_up.id == "event-schema:notification-service"
    assert follow_up.priority == Confidence.LOW
    assert session.answer(follow_up.id, "WebhookDelivered") == SessionState.RESOLVED

    assert "WebhookDelivered" in session.descriptor("notification-service").publishes
    (hypothesis,) = session.hypotheses_for("Integration & Event")
    assert "publish WebhookDelivered" in hypothesis.probable_changes


def test_low_questions_do_not_block_resolution(engine):
    session = engine.analyze(DEPENDENCY_TEXT)

    assert session.state == SessionState.RESOLVED
    hypothesis = session.snapshot()
    assert [q.id for q in hypothesis.open_questions] == ["ownership:billing-service"]
    assert hypothesis.blocking_questions == []
    assert hypothesis.to_dict()["open_questions_note"] == "unresolved, non-blocking"


def test_suggest_ranks_catalog_evidence(engine):
    session = engine.analyze(WEAK_TEXT)
    hits = session.suggest("ownership:fulfillment-service")
    assert hits[0].descriptor.name == "order-service"


def test_each_answer_strictly_reduces_blocking_questions(engine):
    for text in (TIE_TEXT, WEAK_TEXT, PLACEHOLDER_TEXT, SIDE_EFFECT_TEXT, E2E_TEXT):
        session = engine.analyze(text)
        bound = session.step_bound()
        steps = 0
        while True:
            question = session.next_question()
            if question is None:
                break
            before = session.blocking_count()
            picks_option = question.kind in (QuestionKind.TIE, QuestionKind.OWNER)
            session.answer(question.id, question.options[0] if picks_option else "yes")
            assert session.blocking_count() < before
            steps += 1
        assert session.state == SessionState.RESOLVED
        assert steps <= bound


def test_abandoned_session_rejects_further_calls(engine):
    session = engine.analyze(TIE_TEXT)
    question = session.next_question()
    session.abandon()

    assert session.state == SessionState.ABANDONED
    with pytest.raises(RuntimeError):
        session.next_question()
    with pytest.raises(RuntimeError):
        session.answer(question.id, "Orders")


def test_empty_input_asks_to_rephrase(engine):
    session = engine.analyze("Please make it faster")
    hypothesis = session.snapshot()

    assert hypothesis.no_domains_matched
    assert hypothesis.impact_matrix == []
    assert [q.id for q in hypothesis.open_questions] == ["rephrase:request"]
    assert hypothesis.open_questions[0].priority == Confidence.LOW
    assert session.state == SessionState.RESOLVED


def test_question_ids_are_stable_across_runs(engine):
    first = [q.id for q in engine.analyze(TIE_TEXT).questions]
    second = [q.id for q in engine.analyze(TIE_TEXT).questions]
    assert first == second
    assert len(set(first)) == len(first)


def test_confirming_a_tied_component_settles_the_tie(engine):
    session = engine.analyze(TIE_TEXT)

    session.override("ownership:order-service")

    assert not session.question(TIE_ID).is_open
    assert session.record("Orders").impact_type == ImpactType.CORE_CHANGE
    assert session.record("Billing").impact_type == ImpactType.DEPENDENCY
    assert session.state == SessionState.RESOLVED


def test_question_closed_by_an_override_cannot_be_answered_again(engine):
    session = engine.analyze(TIE_TEXT)
    assert session.next_question().id == TIE_ID

    assert session.override("ownership:order-service") == SessionState.RESOLVED
    assert session.dispatched is None

    with pytest.raises(RuntimeError):
        session.answer(TIE_ID, "Billing")
    assert session.record("Orders").impact_type == ImpactType.CORE_CHANGE
    assert session.record("Billing").impact_type == ImpactType.DEPENDENCY
    assert session.state == SessionState.RESOLVED
    assert session.next_question() is None


def test_vocabulary_tie_raises_a_high_tie_question(engine):
    session = engine.analyze("Fix the checkout payment")

    assert [q.id for q in session.questions] == [
        TIE_ID,
        "ownership:order-service",
        "ownership:fulfillment-service",
        "ownership:billing-service",
    ]
    question = session.next_question()
    assert question.id == TIE_ID
    assert question.priority == Confidence.HIGH

    assert session.answer(TIE_ID, "Billing") == SessionState.RESOLVED
    assert session.record("Billing").impact_type == ImpactType.CORE_CHANGE
    assert session.record("Orders").impact_type == ImpactType.DEPENDENCY


def test_rejecting_a_tie_by_override_rejects_every_tied_domain(engine):
    session = engine.analyze(TIE_TEXT)
    session.next_question()

    assert session.override(TIE_ID, accept=False) == SessionState.RESOLVED
    assert session.question(TIE_ID).answer == "no owner"
    assert session.rejected_domains == ["Orders", "Billing"]
    assert not any(record.ambiguous for record in session.records)
    assert session.hypotheses == []
    assert session.dispatched is None
    assert session.log[-1].answer == "override-reject"
