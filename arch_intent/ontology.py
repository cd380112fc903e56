"""Read-only knowledge base: the domain ontology and the component catalog."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from .config import Lexicon, ScoringConfig
from .models import ComponentDescriptor, Domain, DomainRole
from .text import normalize_phrase

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Ontology:
    """Immutable set of domains, validated once on construction.

    Trigger phrases and owned entities are stored normalized so that they
    compare directly against ``Tag.term``.
    """

    version: str
    domains: Tuple[Domain, ...]
    _by_name: Dict[str, Domain] = field(init=False, repr=False, compare=False)
    _owners: Dict[str, str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        normalized = tuple(_normalize_domain(domain) for domain in self.domains)
        by_name: Dict[str, Domain] = {}
        owners: Dict[str, str] = {}
        for domain in normalized:
            if domain.name in by_name:
                raise ValueError(f"Duplicate domain: {domain.name}")
            for phrase, weight in domain.triggers.items():
                if weight < 0:
                    raise ValueError(f"Negative weight for trigger {phrase!r} in {domain.name}")
            for entity in domain.entities:
                if entity in owners:
                    raise ValueError(
                        f"Entity {entity!r} owned by both {owners[entity]} and {domain.name}"
                    )
                owners[entity] = domain.name
            by_name[domain.name] = domain

        object.__setattr__(self, "domains", normalized)
        object.__setattr__(self, "_by_name", by_name)
        object.__setattr__(self, "_owners", owners)

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    def __iter__(self) -> Iterator[Domain]:
        return iter(self.domains)

    def __len__(self) -> int:
        return len(self.domains)

    def get(self, name: str) -> Domain:
        if name not in self._by_name:
            raise KeyError(f"Domain not found: {name}")
        return self._by_name[name]

    def owner_of(self, term: str) -> Optional[str]:
        return self._owners.get(term)

    def with_role(self, role: DomainRole) -> List[Domain]:
        return [domain for domain in self.domains if domain.role == role]

    def vocabulary(self) -> List[str]:
        phrases = set(self._owners)
        for domain in self.domains:
            phrases.update(domain.triggers)
        return sorted(phrases)


def _normalize_domain(domain: Domain) -> Domain:
    triggers: Dict[str, float] = {}
    for phrase, weight in domain.triggers.items():
        term = normalize_phrase(phrase)
        if term:
            weight = float(weight)
            triggers[term] = max(triggers[term], weight) if term in triggers else weight
    entities = frozenset(term for term in (normalize_phrase(entity) for entity in domain.entities) if term)
    return replace(
        domain,
        triggers=triggers,
        entities=entities,
        components=tuple(domain.components),
        role=DomainRole(domain.role),
    )


@dataclass(frozen=True)
class CatalogSnapshot:
    """One consistent, immutable view of the component catalog."""

    version: int
    components: Tuple[ComponentDescriptor, ...] = ()
    _by_name: Dict[str, ComponentDescriptor] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        by_name: Dict[str, ComponentDescriptor] = {}
        for component in self.components:
            if component.name in by_name:
                raise ValueError(f"Duplicate component: {component.name}")
            by_name[component.name] = component
        object.__setattr__(self, "_by_name", by_name)

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    def __iter__(self) -> Iterator[ComponentDescriptor]:
        return iter(self.components)

    def __len__(self) -> int:
        return len(self.components)

    def get(self, name: str) -> Optional[ComponentDescriptor]:
        return self._by_name.get(name)

    def in_domain(self, domain: str) -> List[ComponentDescriptor]:
        return [component for component in self.components if component.domain == domain]

    def with_component(self, descriptor: ComponentDescriptor) -> "CatalogSnapshot":
        """Copy of this snapshot with ``descriptor`` appended or replaced in place."""

        if descriptor.name in self._by_name:
            components = tuple(
                descriptor if component.name == descriptor.name else component for component in self.components
            )
        else:
            components = self.components + (descriptor,)
        return CatalogSnapshot(version=self.version + 1, components=components)


class ComponentCatalog:
    """Component registry with read-copy-update semantics.

    Readers take the current snapshot without locking; registrations are
    serialized and publish a fresh snapshot, so in-flight discovery reads
    never observe a half-applied change.
    """

    def __init__(self, components: Iterable[ComponentDescriptor] = ()) -> None:
        self._lock = threading.Lock()
        self._snapshot = CatalogSnapshot(version=0, components=tuple(components))

    def snapshot(self) -> CatalogSnapshot:
        return self._snapshot

    def register(self, descriptor: ComponentDescriptor) -> CatalogSnapshot:
        with self._lock:
            current = self._snapshot
            if descriptor.name in current:
                raise ValueError(f"Component already registered: {descriptor.name}")
            updated = current.with_component(descriptor)
            self._snapshot = updated
        logger.info("Registered component %s in domain %s (catalog v%d)", descriptor.name, descriptor.domain, updated.version)
        return updated

    def __len__(self) -> int:
        return len(self._snapshot)

    def __contains__(self, name: object) -> bool:
        return name in self._snapshot

    def get(self, name: str) -> Optional[ComponentDescriptor]:
        return self._snapshot.get(name)


@dataclass
class KnowledgeBase:
    """Everything one engine instance reads: ontology, catalog and tuning."""

    ontology: Ontology
    catalog: ComponentCatalog
    scoring: ScoringConfig = field(default_factory=ScoringConfig)
    lexicon: Lexicon = field(default_factory=Lexicon)

    def __post_init__(self) -> None:
        for component in self.catalog.snapshot():
            if component.domain not in self.ontology:
                raise ValueError(f"Component {component.name} references unknown domain {component.domain}")

    @property
    def version(self) -> str:
        return self.ontology.version

    def register(self, descriptor: ComponentDescriptor) -> CatalogSnapshot:
        if descriptor.domain not in self.ontology:
            raise ValueError(f"Component {descriptor.name} references unknown domain {descriptor.domain}")
        return self.catalog.register(descriptor)
