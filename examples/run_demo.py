"""Run a scripted local demo of the architectural intent engine."""

from __future__ import annotations

import logging
import pathlib

from arch_intent import EvalCase, KnowledgeBaseManager, RefinementSession, load_knowledge_base

KNOWLEDGE_BASE = pathlib.Path(__file__).resolve().parent / "ontology.yaml"

TICKET_REQUEST = (
    "When a premium customer submits a support ticket, show their priority status "
    "on the agent dashboard and notify the assigned team lead"
)
TIE_REQUEST = "Apply a discount to the order and regenerate the invoice"
WEAK_REQUEST = "Speed up checkout"


def print_snapshot(title: str, session: RefinementSession, manager: KnowledgeBaseManager) -> None:
    hypothesis = session.snapshot()
    print(f"\n=== {title} (kb={manager.active_version}, state={hypothesis.state.value}) ===")
    for row in hypothesis.impact_matrix:
        print(f"{row.domain:<24} {row.impact_type.value:<11} {row.confidence.value:<6} {', '.join(row.components)}")
    for edge in hypothesis.edges:
        print(f"edge: {edge.source} -> {edge.target} ({edge.kind} {edge.via})")
    for question in hypothesis.open_questions:
        print(f"open (non-blocking): {question.id}")


def drive(session: RefinementSession, answers: dict) -> None:
    while True:
        question = session.next_question()
        if question is None:
            return
        answer = answers.get(question.id, "yes")
        print(f"Q [{question.priority.value}] {question.prompt}")
        print(f"A {answer}")
        session.answer(question.id, answer)


def main() -> None:
    logging.basicConfig(level=logging.WARNING, format="%(levelname)s %(name)s: %(message)s")

    manager = KnowledgeBaseManager()
    manager.swap("v2025-01", load_knowledge_base(KNOWLEDGE_BASE))

    session = manager.analyze(TICKET_REQUEST)
    print_snapshot("Premium Support Ticket", session, manager)

    session = manager.analyze(TIE_REQUEST)
    drive(session, {"tie:Orders|Billing": "Orders"})
    print_snapshot("Discount Ownership Tie", session, manager)

    session = manager.analyze(WEAK_REQUEST)
    drive(session, {"ownership:fulfillment-service": "no"})
    print_snapshot("Weak Checkout Signal", session, manager)

    report = manager.evaluate(
        [
            EvalCase("ticket", TICKET_REQUEST, {"Customer & Identity", "Frontend Experience", "Integration & Event"}),
            EvalCase("tie", TIE_REQUEST, {"Orders", "Billing"}),
            EvalCase("weak", WEAK_REQUEST, {"Orders"}),
        ]
    )

    print("\n=== Eval Report ===")
    print(f"Total Cases: {report.total}")
    print(f"Exact:      {report.exact_match:.2f}")
    print(f"Precision:  {report.precision:.2f}")
    print(f"Recall:     {report.recall:.2f}")


if __name__ == "__main__":
    main()
