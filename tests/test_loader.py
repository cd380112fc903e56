import json
from pathlib import Path

import pytest
import yaml

from arch_intent import (
    Confidence,
    DomainRole,
    KnowledgeBaseError,
    knowledge_base_to_dict,
    load_knowledge_base,
    parse_knowledge_base,
)

from conftest import sample_payload

EXAMPLE = Path(__file__).resolve().parents[1] / "examples" / "ontology.yaml"


def test_bundled_example_knowledge_base_loads():
    kb = load_knowledge_base(EXAMPLE)

    assert len(kb.ontology) >= 4
    assert kb.ontology.with_role(DomainRole.FRONTEND)
    assert kb.ontology.with_role(DomainRole.INTEGRATION)
    assert len(kb.catalog) > 0


def test_yaml_and_json_documents_load_the_same(tmp_path: Path):
    yaml_path = tmp_path / "kb.yaml"
    json_path = tmp_path / "kb.json"
    yaml_path.write_text(yaml.safe_dump(sample_payload()), encoding="utf-8")
    json_path.write_text(json.dumps(sample_payload()), encoding="utf-8")

    from_yaml = load_knowledge_base(yaml_path)
    from_json = load_knowledge_base(json_path)

    assert from_yaml.ontology == from_json.ontology
    assert [c.name for c in from_yaml.catalog.snapshot()] == [c.name for c in from_json.catalog.snapshot()]


def test_trigger_lists_take_default_weight():
    payload = sample_payload()
    payload["scoring"] = {"default_trigger_weight": 1.5, "rule_floor": "LOW"}
    kb = parse_knowledge_base(payload)

    assert kb.ontology.get("Frontend Experience").triggers == {"dashboard": 1.5, "show": 1.5}
    assert kb.scoring.rule_floor == Confidence.LOW


def test_lexicon_section_extends_defaults():
    payload = sample_payload()
    payload["lexicon"] = {"communication_actions": ["page"], "qualifiers": ["gold"]}
    kb = parse_knowledge_base(payload)

    assert "page" in kb.lexicon.communication_actions
    assert "notify" in kb.lexicon.communication_actions
    assert "gold" in kb.lexicon.qualifiers


@pytest.mark.parametrize(
    "mutate",
    [
        lambda p: p.update(domains=[]),
        lambda p: p["components"].append({"name": "ledger", "domain": "Accounting"}),
        lambda p: p["components"].append({"name": "order-service", "domain": "Orders"}),
        lambda p: p["domains"].append(dict(p["domains"][0])),
        lambda p: p["domains"][0].update(role="backend"),
        lambda p: p["domains"][2].update(triggers={"notify": -1.0}),
        lambda p: p["domains"][5].update(entities=["order"]),
        lambda p: p.update(scoring={"high_threshold": 0}),
        lambda p: p.update(scoring={"unknown_knob": 1}),
    ],
)
def test_invalid_documents_raise_knowledge_base_error(mutate):
    payload = sample_payload()
    mutate(payload)
    with pytest.raises(KnowledgeBaseError):
        parse_knowledge_base(payload)


def test_non_mapping_document_is_rejected(tmp_path: Path):
    path = tmp_path / "kb.yaml"
    path.write_text("- just\n- a list\n", encoding="utf-8")
    with pytest.raises(KnowledgeBaseError):
        load_knowledge_base(path)


def test_export_reloads_to_an_equal_knowledge_base(kb):
    reloaded = parse_knowledge_base(knowledge_base_to_dict(kb))

    assert reloaded.ontology == kb.ontology
    assert reloaded.scoring == kb.scoring
    assert reloaded.lexicon == kb.lexicon
    assert reloaded.catalog.snapshot().components == kb.catalog.snapshot().components
