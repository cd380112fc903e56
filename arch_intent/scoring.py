"""Weighted rule evaluation from tags to per-domain impact records."""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Set

from .config import COMMUNICATION, PRESENTATION, ScoringConfig
from .models import Confidence, DomainRole, ImpactRecord, ImpactType, Tag, TagKind
from .ontology import Ontology

logger = logging.getLogger(__name__)

RULE_THRESHOLD = "threshold"
RULE_OWNERSHIP = "ownership"
RULE_TIE = "tie"
RULE_SIDE_EFFECT = "side-effect"
RULE_UI = "ui"
RULE_DEPENDENCY = "dependency"


@dataclass
class _Evidence:
    trigger_score: float = 0.0
    owned_tags: int = 0
    matched: List[str] = field(default_factory=list)
    rules: List[str] = field(default_factory=list)
    notes: List[str] = field(default_factory=list)

    def total(self, ownership_bonus: float) -> float:
        return self.trigger_score + ownership_bonus * self.owned_tags

    def match(self, term: str) -> None:
        if term not in self.matched:
            self.matched.append(term)


@dataclass
class _Decision:
    impact_type: ImpactType
    confidence: Confidence
    ambiguous: bool = False


class DomainScorer:
    """Scores every ontology domain against a tag sequence.

    Raw scores come from trigger weights plus an ownership bonus per owned
    entity tag. The ownership, tie, side-effect, UI and dependency rules are
    then applied on top of the threshold classification.
    """

    def __init__(self, ontology: Ontology, config: ScoringConfig | None = None):
        self.ontology = ontology
        self.config = config or ScoringConfig()

    def score(self, tags: Sequence[Tag]) -> List[ImpactRecord]:
        evidence = self._collect(tags)
        decisions: Dict[str, _Decision] = {}
        bonus = self.config.ownership_bonus

        for name, item in evidence.items():
            total = item.total(bonus)
            if total <= 0:
                continue
            confidence = Confidence.HIGH if total >= self.config.high_threshold else Confidence.MEDIUM
            item.rules.append(RULE_THRESHOLD)
            item.notes.append(f"score {total:g} vs threshold {self.config.high_threshold:g}")
            decisions[name] = _Decision(self._vocabulary_type(name, item, confidence), confidence)

        tied = self._tied_domains(evidence)
        primary = None if tied else self._primary_domain(tags)

        for name in tied:
            decisions[name] = _Decision(ImpactType.CORE_CHANGE, Confidence.HIGH, ambiguous=True)
            evidence[name].rules.append(RULE_TIE)
            evidence[name].notes.append(f"tied for ownership with {', '.join(sorted(set(tied) - {name}))}")

        if primary is not None:
            decisions[primary] = _Decision(ImpactType.CORE_CHANGE, Confidence.HIGH)
            evidence[primary].rules.append(RULE_OWNERSHIP)
            evidence[primary].notes.append("owns the primary business entity")
            self._apply_dependency_rule(tags, primary, evidence, decisions)

        self._apply_role_rule(tags, COMMUNICATION, DomainRole.INTEGRATION, ImpactType.SIDE_EFFECT, RULE_SIDE_EFFECT, evidence, decisions)
        self._apply_role_rule(tags, PRESENTATION, DomainRole.FRONTEND, ImpactType.UI_CHANGE, RULE_UI, evidence, decisions)

        records = []
        for domain in self.ontology:
            decision = decisions.get(domain.name)
            if decision is None:
                continue
            item = evidence[domain.name]
            records.append(
                ImpactRecord(
                    domain=domain.name,
                    impact_type=decision.impact_type,
                    confidence=decision.confidence,
                    score=item.total(bonus),
                    matched_triggers=tuple(item.matched),
                    reasoning="; ".join(item.notes),
                    rules=tuple(item.rules),
                    ambiguous=decision.ambiguous,
                )
            )
            logger.debug(
                "Domain %s: %s/%s score=%g rules=%s",
                domain.name,
                decision.impact_type.value,
                decision.confidence.value,
                item.total(bonus),
                ",".join(item.rules),
            )
        return records

    def _collect(self, tags: Sequence[Tag]) -> Dict[str, _Evidence]:
        evidence: Dict[str, _Evidence] = defaultdict(_Evidence)
        for tag in tags:
            for domain in self.ontology:
                if tag.term in domain.triggers:
                    evidence[domain.name].trigger_score += domain.triggers[tag.term]
                    evidence[domain.name].match(tag.term)
                if tag.kind == TagKind.ENTITY and tag.term in domain.entities:
                    evidence[domain.name].owned_tags += 1
                    evidence[domain.name].match(tag.term)
        return evidence

    def _vocabulary_type(self, name: str, item: _Evidence, confidence: Confidence) -> ImpactType:
        role = self.ontology.get(name).role
        if role == DomainRole.FRONTEND:
            return ImpactType.UI_CHANGE
        if role == DomainRole.INTEGRATION:
            return ImpactType.SIDE_EFFECT
        if item.owned_tags:
            return ImpactType.API_CHANGE if item.trigger_score > 0 else ImpactType.CORE_CHANGE
        return ImpactType.CORE_CHANGE if confidence == Confidence.HIGH else ImpactType.POSSIBLE

    def _tied_domains(self, evidence: Dict[str, _Evidence]) -> List[str]:
        """Owner candidates sharing the top score.

        Entity owners compete among themselves. Without any owned entity the
        core domains compete on trigger vocabulary; frontend and integration
        domains never own the change.
        """

        bonus = self.config.ownership_bonus
        scored = {name: item for name, item in evidence.items() if item.total(bonus) > 0}
        candidates = {name: item.total(bonus) for name, item in scored.items() if item.owned_tags}
        if not candidates:
            candidates = {
                name: item.total(bonus)
                for name, item in scored.items()
                if self.ontology.get(name).role == DomainRole.CORE
            }
        if len(candidates) < 2:
            return []
        top = max(candidates.values())
        tied = [domain.name for domain in self.ontology if candidates.get(domain.name) == top]
        return tied if len(tied) > 1 else []

    def _primary_domain(self, tags: Sequence[Tag]) -> Optional[str]:
        for tag in tags:
            if tag.kind != TagKind.ENTITY:
                continue
            owner = self.ontology.owner_of(tag.term)
            if owner is not None:
                return owner
        return None

    def _apply_dependency_rule(
        self,
        tags: Sequence[Tag],
        primary: str,
        evidence: Dict[str, _Evidence],
        decisions: Dict[str, _Decision],
    ) -> None:
        seen: Set[str] = set()
        for tag in tags:
            if tag.kind != TagKind.ENTITY:
                continue
            owner = self.ontology.owner_of(tag.term)
            if owner is None or owner == primary or owner in seen:
                continue
            seen.add(owner)
            if evidence[owner].trigger_score > 0:
                continue
            decisions[owner] = _Decision(ImpactType.DEPENDENCY, self.config.dependency_confidence)
            evidence[owner].rules.append(RULE_DEPENDENCY)
            evidence[owner].notes.append(f"owns {tag.term!r}, needed by {primary}")

    def _apply_role_rule(
        self,
        tags: Sequence[Tag],
        category: str,
        role: DomainRole,
        impact_type: ImpactType,
        rule: str,
        evidence: Dict[str, _Evidence],
        decisions: Dict[str, _Decision],
    ) -> None:
        actions = [tag.term for tag in tags if tag.kind == TagKind.ACTION and tag.category == category]
        if not actions:
            return
        for domain in self.ontology.with_role(role):
            current = decisions.get(domain.name)
            if current is not None and current.impact_type == ImpactType.CORE_CHANGE and current.confidence == Confidence.HIGH:
                # Owning the primary entity outranks the role rule.
                continue
            confidence = current.confidence.at_least(self.config.rule_floor) if current else self.config.rule_floor
            decisions[domain.name] = _Decision(impact_type, confidence)
            item = evidence[domain.name]
            item.rules.append(rule)
            item.notes.append(f"{category} action {', '.join(dict.fromkeys(actions))}")
