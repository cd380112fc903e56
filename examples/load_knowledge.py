"""Load a knowledge base document and atomically activate it as a new version."""

from __future__ import annotations

import argparse
import logging
import pathlib

from arch_intent import KnowledgeBaseManager


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Validate and activate a knowledge base")
    parser.add_argument("document", type=pathlib.Path, help="Path to the YAML or JSON knowledge base")
    parser.add_argument(
        "--snapshot-dir",
        type=pathlib.Path,
        default=pathlib.Path(".arch_intent"),
        help="Directory for knowledge base snapshots",
    )
    parser.add_argument(
        "--version",
        type=str,
        default=None,
        help="Version label (defaults to the document's version)",
    )
    parser.add_argument("--verbose", action="store_true")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    manager = KnowledgeBaseManager(snapshot_dir=args.snapshot_dir)
    kb = manager.build_from_file(args.document, version=args.version)

    print(f"version={manager.active_version}")
    print(f"domains={len(kb.ontology)}")
    print(f"components={len(kb.catalog)}")


if __name__ == "__main__":
    main()
