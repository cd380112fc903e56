from arch_intent import ComponentResolver, Confidence, ImpactRecord, ImpactType, QuestionKind

from conftest import E2E_TEXT, TIE_TEXT


def _resolver(kb):
    return ComponentResolver(kb.ontology, kb.scoring)


def test_high_record_maps_to_every_domain_component(engine, kb):
    record = next(r for r in engine.score(engine.tag(E2E_TEXT)) if r.domain == "Customer & Identity")
    hypotheses = _resolver(kb).resolve(record, kb.catalog)

    assert [h.component for h in hypotheses] == ["customer-service", "support-ticket-service"]
    for hypothesis in hypotheses:
        assert not hypothesis.speculative
        assert hypothesis.open_questions == ()
        assert hypothesis.change_kind == ImpactType.CORE_CHANGE
        assert hypothesis.domain == kb.catalog.get(hypothesis.component).domain

    changes = {h.component: h.probable_changes for h in hypotheses}
    assert "update support ticket handling" in changes["support-ticket-service"]
    assert "publish TicketSubmitted" in changes["support-ticket-service"]
    assert "extend GET /customers/{id}" in changes["customer-service"]


def test_medium_record_asks_for_ownership_at_medium(kb):
    record = ImpactRecord("Orders", ImpactType.POSSIBLE, Confidence.MEDIUM, 1.0, ("checkout",))
    hypotheses = _resolver(kb).resolve(record, kb.catalog.snapshot())

    assert [h.component for h in hypotheses] == ["order-service", "fulfillment-service"]
    question = hypotheses[0].open_questions[0]
    assert question.id == "ownership:order-service"
    assert question.kind == QuestionKind.OWNERSHIP
    assert question.priority == Confidence.MEDIUM


def test_low_record_question_is_low(kb):
    record = ImpactRecord("Billing", ImpactType.DEPENDENCY, Confidence.LOW, 2.0, ("invoice",))
    (hypothesis,) = _resolver(kb).resolve(record, kb.catalog)

    assert hypothesis.open_questions[0].priority == Confidence.LOW
    assert hypothesis.probable_changes[0] == "provide invoice to dependent domains"


def test_tied_records_ask_at_high(engine, kb):
    for record in engine.score(engine.tag(TIE_TEXT)):
        for hypothesis in _resolver(kb).resolve(record, kb.catalog):
            assert hypothesis.open_questions[0].priority == Confidence.HIGH


def test_domain_without_components_gets_speculative_placeholder(kb):
    record = ImpactRecord("Analytics & Reporting", ImpactType.CORE_CHANGE, Confidence.HIGH, 4.0, ("export", "kpi"))
    (placeholder,) = _resolver(kb).resolve(record, kb.catalog)

    assert placeholder.speculative
    assert placeholder.component == "unassigned:Analytics & Reporting"
    (question,) = placeholder.open_questions
    assert question.id == "owner:Analytics & Reporting"
    assert question.priority == Confidence.HIGH
    assert question.options == ("reporting-service",)


def test_rejected_record_resolves_to_nothing(kb):
    record = ImpactRecord("Orders", ImpactType.CORE_CHANGE, Confidence.HIGH, 2.0, rejected=True)
    assert _resolver(kb).resolve(record, kb.catalog) == []
