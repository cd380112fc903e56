"""Architectural intent resolution: from a change request to an impact hypothesis."""

from .models import (
    ComponentDescriptor,
    ComponentHypothesis,
    Confidence,
    DependencyEdge,
    Domain,
    DomainRole,
    Hypothesis,
    ImpactRecord,
    ImpactType,
    OpenQuestion,
    QuestionKind,
    SessionState,
    Tag,
    TagKind,
)
from .config import Lexicon, ScoringConfig
from .ontology import CatalogSnapshot, ComponentCatalog, KnowledgeBase, Ontology
from .tagger import Tagger
from .scoring import DomainScorer
from .resolver import ComponentResolver
from .discovery import DiscoveryHit, DiscoverySearch
from .session import RefinementSession
from .assembler import HypothesisAssembler
from .loader import KnowledgeBaseError, knowledge_base_to_dict, load_knowledge_base, parse_knowledge_base
from .pipeline import EvalCase, EvalReport, IntentEngine, KnowledgeBaseManager
from .store import KnowledgeSnapshot, SnapshotStore

__all__ = [
    "CatalogSnapshot",
    "ComponentCatalog",
    "ComponentDescriptor",
    "ComponentHypothesis",
    "ComponentResolver",
    "Confidence",
    "DependencyEdge",
    "DiscoveryHit",
    "DiscoverySearch",
    "Domain",
    "DomainRole",
    "DomainScorer",
    "EvalCase",
    "EvalReport",
    "Hypothesis",
    "HypothesisAssembler",
    "ImpactRecord",
    "ImpactType",
    "IntentEngine",
    "KnowledgeBase",
    "KnowledgeBaseError",
    "KnowledgeBaseManager",
    "KnowledgeSnapshot",
    "Lexicon",
    "Ontology",
    "OpenQuestion",
    "QuestionKind",
    "RefinementSession",
    "ScoringConfig",
    "SessionState",
    "SnapshotStore",
    "Tag",
    "TagKind",
    "Tagger",
    "knowledge_base_to_dict",
    "load_knowledge_base",
    "parse_knowledge_base",
]
