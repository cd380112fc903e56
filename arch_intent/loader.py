"""Loads and validates knowledge base documents (YAML or JSON)."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Literal, Mapping, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from .config import Lexicon, ScoringConfig
from .models import ComponentDescriptor, ComponentType, Confidence, Domain, DomainRole
from .ontology import ComponentCatalog, KnowledgeBase, Ontology

logger = logging.getLogger(__name__)


class KnowledgeBaseError(ValueError):
    pass


class ScoringSchema(BaseModel):
    model_config = ConfigDict(extra="forbid")

    high_threshold: float = Field(default=2.0, gt=0)
    ownership_bonus: float = Field(default=2.0, ge=0)
    default_trigger_weight: float = Field(default=1.0, ge=0)
    rule_floor: Literal["HIGH", "MEDIUM", "LOW"] = "MEDIUM"
    dependency_confidence: Literal["HIGH", "MEDIUM", "LOW"] = "LOW"
    max_suggestions: int = Field(default=5, ge=1)


class LexiconSchema(BaseModel):
    """Extra lexicon words; they extend the built-in defaults."""

    model_config = ConfigDict(extra="forbid")

    communication_actions: List[str] = Field(default_factory=list)
    presentation_actions: List[str] = Field(default_factory=list)
    mutation_actions: List[str] = Field(default_factory=list)
    qualifiers: List[str] = Field(default_factory=list)


class DomainSchema(BaseModel):
    name: str = Field(min_length=1)
    responsibility: str = ""
    role: Literal["core", "frontend", "integration"] = "core"
    # A plain list of phrases gets the default trigger weight.
    triggers: Union[Dict[str, float], List[str]] = Field(default_factory=dict)
    entities: List[str] = Field(default_factory=list)
    components: List[str] = Field(default_factory=list)

    @field_validator("triggers")
    @classmethod
    def _non_negative(cls, value):
        if isinstance(value, dict):
            for phrase, weight in value.items():
                if weight < 0:
                    raise ValueError(f"trigger {phrase!r} has a negative weight")
        return value


class ComponentSchema(BaseModel):
    name: str = Field(min_length=1)
    domain: str = Field(min_length=1)
    type: Literal["backend-service", "frontend-app", "shared-library", "integration"] = "backend-service"
    technology: Optional[str] = None
    apis: List[str] = Field(default_factory=list)
    publishes: List[str] = Field(default_factory=list)
    consumes: List[str] = Field(default_factory=list)


class KnowledgeBaseSchema(BaseModel):
    version: str = "unversioned"
    scoring: ScoringSchema = Field(default_factory=ScoringSchema)
    lexicon: LexiconSchema = Field(default_factory=LexiconSchema)
    domains: List[DomainSchema] = Field(min_length=1)
    components: List[ComponentSchema] = Field(default_factory=list)

    @model_validator(mode="after")
    def _consistent(self):
        names = [domain.name for domain in self.domains]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"duplicate domains: {', '.join(duplicates)}")
        known = set(names)
        seen = set()
        for component in self.components:
            if component.domain not in known:
                raise ValueError(f"component {component.name} references unknown domain {component.domain}")
            if component.name in seen:
                raise ValueError(f"duplicate component: {component.name}")
            seen.add(component.name)
        return self


def parse_knowledge_base(payload: Mapping[str, Any]) -> KnowledgeBase:
    try:
        schema = KnowledgeBaseSchema.model_validate(dict(payload or {}))
    except ValidationError as exc:
        raise KnowledgeBaseError(f"Invalid knowledge base: {exc}") from exc

    scoring = ScoringConfig(
        high_threshold=schema.scoring.high_threshold,
        ownership_bonus=schema.scoring.ownership_bonus,
        default_trigger_weight=schema.scoring.default_trigger_weight,
        rule_floor=Confidence(schema.scoring.rule_floor),
        dependency_confidence=Confidence(schema.scoring.dependency_confidence),
        max_suggestions=schema.scoring.max_suggestions,
    )
    defaults = Lexicon()
    lexicon = Lexicon(
        communication_actions=defaults.communication_actions | set(schema.lexicon.communication_actions),
        presentation_actions=defaults.presentation_actions | set(schema.lexicon.presentation_actions),
        mutation_actions=defaults.mutation_actions | set(schema.lexicon.mutation_actions),
        qualifiers=defaults.qualifiers | set(schema.lexicon.qualifiers),
    )

    domains = []
    for item in schema.domains:
        if isinstance(item.triggers, list):
            triggers = {phrase: scoring.default_trigger_weight for phrase in item.triggers}
        else:
            triggers = dict(item.triggers)
        domains.append(
            Domain(
                name=item.name,
                responsibility=item.responsibility,
                triggers=triggers,
                entities=frozenset(item.entities),
                components=tuple(item.components),
                role=DomainRole(item.role),
            )
        )

    components = [
        ComponentDescriptor(
            name=item.name,
            domain=item.domain,
            type=ComponentType(item.type),
            technology=item.technology,
            apis=tuple(item.apis),
            publishes=tuple(item.publishes),
            consumes=tuple(item.consumes),
        )
        for item in schema.components
    ]

    try:
        ontology = Ontology(version=schema.version, domains=tuple(domains))
        kb = KnowledgeBase(ontology=ontology, catalog=ComponentCatalog(components), scoring=scoring, lexicon=lexicon)
    except ValueError as exc:
        raise KnowledgeBaseError(f"Invalid knowledge base: {exc}") from exc

    logger.info(
        "Loaded knowledge base %s: %d domain(s), %d component(s)",
        ontology.version,
        len(ontology),
        len(components),
    )
    return kb


def load_knowledge_base(path: Path) -> KnowledgeBase:
    path = Path(path)
    with open(path, "r", encoding="utf-8") as f:
        if path.suffix.lower() == ".json":
            payload = json.load(f)
        else:
            payload = yaml.safe_load(f) or {}
    if not isinstance(payload, dict):
        raise KnowledgeBaseError(f"{path} does not contain a mapping")
    return parse_knowledge_base(payload)


def knowledge_base_to_dict(kb: KnowledgeBase) -> Dict[str, Any]:
    """Inverse of ``parse_knowledge_base`` for an already-normalized knowledge base.

    The lexicon is written in full, which is harmless because loading extends
    the defaults with it.
    """

    scoring = kb.scoring
    return {
        "version": kb.ontology.version,
        "scoring": {
            "high_threshold": scoring.high_threshold,
            "ownership_bonus": scoring.ownership_bonus,
            "default_trigger_weight": scoring.default_trigger_weight,
            "rule_floor": scoring.rule_floor.value,
            "dependency_confidence": scoring.dependency_confidence.value,
            "max_suggestions": scoring.max_suggestions,
        },
        "lexicon": {
            "communication_actions": sorted(kb.lexicon.communication_actions),
            "presentation_actions": sorted(kb.lexicon.presentation_actions),
            "mutation_actions": sorted(kb.lexicon.mutation_actions),
            "qualifiers": sorted(kb.lexicon.qualifiers),
        },
        "domains": [
            {
                "name": domain.name,
                "responsibility": domain.responsibility,
                "role": domain.role.value,
                "triggers": dict(domain.triggers),
                "entities": sorted(domain.entities),
                "components": list(domain.components),
            }
            for domain in kb.ontology
        ],
        "components": [
            {
                "name": component.name,
                "domain": component.domain,
                "type": component.type.value,
                "technology": component.technology,
                "apis": list(component.apis),
                "publishes": list(component.publishes),
                "consumes": list(component.consumes),
            }
            for component in kb.catalog.snapshot()
            if not component.speculative
        ],
    }
