"""Folds a refinement session into the renderer-facing Hypothesis."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, List

from .models import ComponentHypothesis, DependencyEdge, Hypothesis, ImpactRow

if TYPE_CHECKING:
    from .session import RefinementSession


class HypothesisAssembler:
    """Builds the impact matrix and infers dependency edges.

    Edges come only from explicit evidence: a published event that another
    hypothesis consumes, or an exposed API another hypothesis plans to call.
    Domain adjacency alone never produces an edge.
    """

    def assemble(self, session: "RefinementSession") -> Hypothesis:
        matrix = []
        for record in session.records:
            if record.rejected:
                continue
            components = tuple(hypothesis.component for hypothesis in session.hypotheses_for(record.domain))
            matrix.append(ImpactRow(record.domain, record.impact_type, record.confidence, components))

        hypotheses = session.hypotheses
        questions = session.questions
        return Hypothesis(
            text=session.text,
            state=session.state,
            impact_matrix=matrix,
            components=hypotheses,
            edges=self.infer_edges(session, hypotheses),
            open_questions=[question for question in questions if question.is_open and not question.blocking],
            blocking_questions=[question for question in questions if question.blocking],
            rejected_domains=session.rejected_domains,
            resolution_log=list(session.log),
            revisions=list(session.revisions),
        )

    @staticmethod
    def infer_edges(session: "RefinementSession", hypotheses: List[ComponentHypothesis]) -> List[DependencyEdge]:
        edges: List[DependencyEdge] = []
        for provider in hypotheses:
            source = session.descriptor(provider.component)
            if source is None:
                continue
            for consumer in hypotheses:
                if consumer.component == provider.component:
                    continue
                target = session.descriptor(consumer.component)
                consumed = target.consumes if target is not None else ()
                for event in source.publishes:
                    if event in consumed:
                        edges.append(DependencyEdge(provider.component, consumer.component, "event", event))
                for api in source.apis:
                    if _calls(consumer.probable_changes, api):
                        edges.append(DependencyEdge(provider.component, consumer.component, "api", api))
        return list(dict.fromkeys(edges))


def _calls(changes, api: str) -> bool:
    pattern = re.compile(r"\bcall(?:s|ing)?\s+" + re.escape(api.lower()) + r"(?![\w/])")
    return any(pattern.search(change.lower()) for change in changes)
