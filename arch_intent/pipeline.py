"""Engine facade, knowledge base lifecycle with blue/green switch, and evaluation."""

from __future__ import annotations

import logging
import pathlib
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Set

from .discovery import DiscoveryHit, DiscoverySearch
from .loader import knowledge_base_to_dict, load_knowledge_base, parse_knowledge_base
from .models import ComponentHypothesis, ImpactRecord, Tag
from .ontology import CatalogSnapshot, KnowledgeBase
from .resolver import ComponentResolver
from .scoring import DomainScorer
from .session import RefinementSession
from .store import KnowledgeSnapshot, SnapshotStore
from .tagger import Tagger

logger = logging.getLogger(__name__)


class IntentEngine:
    """Runs tagging, scoring and resolution against one knowledge base."""

    def __init__(self, kb: KnowledgeBase) -> None:
        self.kb = kb
        self.tagger = Tagger(kb.ontology, kb.lexicon)
        self.scorer = DomainScorer(kb.ontology, kb.scoring)
        self.resolver = ComponentResolver(kb.ontology, kb.scoring)

    def tag(self, text: str) -> List[Tag]:
        return self.tagger.tag(text)

    def score(self, tags: Sequence[Tag]) -> List[ImpactRecord]:
        return self.scorer.score(tags)

    def resolve_all(
        self, records: Sequence[ImpactRecord], catalog: Optional[CatalogSnapshot] = None
    ) -> List[ComponentHypothesis]:
        snapshot = catalog if catalog is not None else self.kb.catalog.snapshot()
        hypotheses: List[ComponentHypothesis] = []
        for record in records:
            hypotheses.extend(self.resolver.resolve(record, snapshot))
        return hypotheses

    def analyze(self, text: str) -> RefinementSession:
        """Starts a refinement session; the whole run sees one catalog snapshot."""

        snapshot = self.kb.catalog.snapshot()
        tags = self.tag(text)
        records = self.score(tags)
        hypotheses = self.resolve_all(records, snapshot)
        logger.info(
            "Analyzed request: %d tag(s), %d domain(s), %d component hypothesis(es), catalog v%d",
            len(tags),
            len(records),
            len(hypotheses),
            snapshot.version,
        )
        return RefinementSession(
            text=text,
            tags=tags,
            records=records,
            hypotheses=hypotheses,
            ontology=self.kb.ontology,
            catalog=snapshot,
            config=self.kb.scoring,
        )

    def discover(self, terms: Iterable[str], limit: Optional[int] = None) -> List[DiscoveryHit]:
        return DiscoverySearch(self.kb.catalog.snapshot()).discover(terms, limit=limit)


@dataclass
class EvalCase:
    name: str
    text: str
    expected_domains: Set[str] = field(default_factory=set)


@dataclass
class EvalReport:
    total: int
    exact_match: float
    precision: float
    recall: float


class KnowledgeBaseManager:
    """Manages knowledge base versions, activation, and persisted snapshots."""

    def __init__(self, snapshot_dir: pathlib.Path | None = None) -> None:
        self._versions: Dict[str, IntentEngine] = {}
        self._active_version: str | None = None
        self.store = SnapshotStore(snapshot_dir) if snapshot_dir else None

        if self.store:
            snapshot = self.store.load_active_snapshot()
            if snapshot:
                self._versions[snapshot.version] = IntentEngine(parse_knowledge_base(snapshot.payload))
                self._active_version = snapshot.version
                logger.info("Restored active knowledge base %s", snapshot.version)

    @property
    def active_version(self) -> str | None:
        return self._active_version

    def versions(self) -> List[str]:
        return list(self._versions)

    def load_version(self, version: str, kb: KnowledgeBase) -> None:
        self._versions[version] = IntentEngine(kb)
        if self.store:
            self.store.save_snapshot(KnowledgeSnapshot.create(version, knowledge_base_to_dict(kb)))

    def activate(self, version: str) -> None:
        if version not in self._versions:
            raise KeyError(f"Knowledge base version not found: {version}")
        if self.store:
            self.store.activate(version)
        self._active_version = version
        logger.info("Activated knowledge base %s", version)

    def swap(self, version: str, kb: KnowledgeBase) -> None:
        """Build the new engine first, then switch the active version."""

        self.load_version(version, kb)
        self.activate(version)

    def build_from_file(self, path: pathlib.Path, version: str | None = None) -> KnowledgeBase:
        kb = load_knowledge_base(path)
        self.swap(version or kb.version, kb)
        return kb

    def active_engine(self) -> IntentEngine:
        if not self._active_version:
            raise RuntimeError("No active knowledge base version")
        return self._versions[self._active_version]

    def analyze(self, text: str) -> RefinementSession:
        return self.active_engine().analyze(text)

    def evaluate(self, cases: List[EvalCase]) -> EvalReport:
        if not cases:
            return EvalReport(total=0, exact_match=0.0, precision=0.0, recall=0.0)

        engine = self.active_engine()
        exact = 0
        true_positives = 0
        predicted_total = 0
        expected_total = 0
        for case in cases:
            records = engine.score(engine.tag(case.text))
            predicted = {record.domain for record in records if not record.rejected}
            expected = set(case.expected_domains)
            if predicted == expected:
                exact += 1
            true_positives += len(predicted & expected)
            predicted_total += len(predicted)
            expected_total += len(expected)
            logger.debug("Eval %s: predicted=%s expected=%s", case.name, sorted(predicted), sorted(expected))

        return EvalReport(
            total=len(cases),
            exact_match=exact / len(cases),
            precision=true_positives / predicted_total if predicted_total else 1.0,
            recall=true_positives / expected_total if expected_total else 1.0,
        )
