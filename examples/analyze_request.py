"""Refine a change request interactively against the active knowledge base."""

from __future__ import annotations

import argparse
import json
import logging
import pathlib

from arch_intent import KnowledgeBaseManager, SessionState


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Analyze a change request")
    parser.add_argument("text", type=str, help="Natural language change request")
    parser.add_argument(
        "--snapshot-dir",
        type=pathlib.Path,
        default=pathlib.Path(".arch_intent"),
        help="Directory for knowledge base snapshots",
    )
    parser.add_argument("--include-low", action="store_true", help="Also ask non-blocking LOW questions")
    parser.add_argument("--verbose", action="store_true")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING, format="%(levelname)s %(name)s: %(message)s")

    manager = KnowledgeBaseManager(snapshot_dir=args.snapshot_dir)
    if not manager.active_version:
        raise RuntimeError("No active knowledge base found. Run load_knowledge.py first.")

    session = manager.analyze(args.text)
    while True:
        question = session.next_question(include_low=args.include_low)
        if question is None:
            break
        print(f"[{question.priority.value}] {question.prompt}")
        for hit in session.suggest(question.id):
            print(f"  candidate #{hit.rank}: {hit.descriptor.name} ({hit.descriptor.domain}, score={hit.score})")
        if question.options:
            print(f"  options: {', '.join(question.options)}")
        try:
            value = input("> ")
        except EOFError:
            session.abandon()
            break
        if value.strip().lower() == "override":
            session.override(question.id)
            continue
        if session.answer(question.id, value) == SessionState.STALLED:
            print("  answer not understood; answer differently, or type 'override' to accept as is")

    if session.state != SessionState.ABANDONED:
        print(json.dumps(session.snapshot().to_dict(), indent=2, ensure_ascii=False))


if __name__ == "__main__":
    main()
