import json

from arch_intent import Confidence, DependencyEdge, ImpactType, SessionState

from conftest import DEPENDENCY_TEXT, E2E_TEXT


def test_impact_matrix_and_event_edges_for_end_to_end_request(engine):
    hypothesis = engine.analyze(E2E_TEXT).snapshot()

    assert hypothesis.state == SessionState.RESOLVED
    assert [(row.domain, row.impact_type, row.confidence) for row in hypothesis.impact_matrix] == [
        ("Customer & Identity", ImpactType.CORE_CHANGE, Confidence.HIGH),
        ("Frontend Experience", ImpactType.UI_CHANGE, Confidence.HIGH),
        ("Integration & Event", ImpactType.SIDE_EFFECT, Confidence.HIGH),
    ]
    assert hypothesis.impact_matrix[0].components == ("customer-service", "support-ticket-service")
    assert hypothesis.edges == [
        DependencyEdge("support-ticket-service", "agent-portal", "event", "TicketSubmitted"),
        DependencyEdge("support-ticket-service", "notification-service", "event", "TicketSubmitted"),
    ]


def test_domain_adjacency_alone_creates_no_edge(engine):
    hypothesis = engine.analyze(E2E_TEXT).snapshot()

    sources = {edge.source for edge in hypothesis.edges}
    assert "customer-service" not in sources
    assert all(edge.target != "customer-service" for edge in hypothesis.edges)


def test_confirmed_api_call_adds_api_edge(engine):
    session = engine.analyze(DEPENDENCY_TEXT)
    assert engine.analyze(DEPENDENCY_TEXT).snapshot().edges == [
        DependencyEdge("order-service", "fulfillment-service", "event", "OrderPlaced"),
        DependencyEdge("order-service", "billing-service", "event", "OrderPlaced"),
    ]

    ownership = session.next_question(include_low=True)
    assert ownership.id == "ownership:billing-service"
    session.answer(ownership.id, "yes")

    follow_up = session.next_question(include_low=True)
    assert follow_up.id == "api-call:billing-service"
    assert follow_up.options == ("POST /invoices", "GET /invoices/{id}")
    session.answer(follow_up.id, "GET /invoices/{id}")

    edges = session.snapshot().edges
    assert DependencyEdge("billing-service", "order-service", "api", "GET /invoices/{id}") in edges
    assert DependencyEdge("billing-service", "fulfillment-service", "api", "GET /invoices/{id}") in edges
    assert not any(edge.via == "POST /invoices" for edge in edges)
    assert session.record("Billing").confidence == Confidence.HIGH


def test_snapshot_is_self_describing_and_idempotent(engine):
    first = engine.analyze(E2E_TEXT).snapshot().to_dict()
    second = engine.analyze(E2E_TEXT).snapshot().to_dict()

    assert first == second
    assert first["state"] == "Resolved"
    assert first["no_domains_matched"] is False
    assert first["impact_matrix"][0]["impact_type"] == "CoreChange"
    json.dumps(first)
