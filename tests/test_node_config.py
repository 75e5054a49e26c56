"""NodeConfigValidator — property checks for one node."""

from __future__ import annotations

import pytest

from n8n_dev_agent.knowledge import NodeTypeDescriptor
from n8n_dev_agent.workflow.node_config import NodeConfigValidator, ValidationProfile
from n8n_dev_agent.workflow.result import ResultCollector

_DESC = NodeTypeDescriptor.from_dict({
    "node_type": "n8n-nodes-base.example",
    "versions": [1],
    "properties": [
        {"name": "resource", "type": "options", "default": "user",
         "options": [{"name": "User", "value": "user"}, {"name": "Team", "value": "team"}]},
        {"name": "userId", "type": "string", "required": True, "default": "",
         "displayOptions": {"show": {"resource": ["user"]}}},
        {"name": "limit", "type": "number", "default": 50,
         "displayOptions": {"hide": {"resource": ["team"]}}},
        {"name": "notice", "type": "notice", "required": True, "default": ""},
        {"name": "simplify", "type": "boolean", "default": True},
        {"name": "payload", "type": "json", "default": "{}"},
    ],
})


def _run(params, profile=ValidationProfile.RUNTIME):
    collector = ResultCollector()
    node = {"name": "Example", "type": _DESC.node_type, "parameters": params}
    NodeConfigValidator().validate(node, _DESC, collector, profile)
    return collector.build()


def test_required_visible_property_is_missing():
    result = _run({})
    assert [e.code for e in result.errors] == ["missing_required"]
    assert result.errors[0].details == {"property": "userId"}
    assert result.errors[0].node_name == "Example"


def test_required_property_hidden_by_other_value():
    assert _run({"resource": "team"}).valid is True


def test_empty_required_value():
    result = _run({"userId": ""})
    assert "is empty" in result.errors[0].message


@pytest.mark.parametrize("params,expected", [
    ({"userId": "u", "limit": "ten"}, "number"),
    ({"userId": "u", "simplify": "yes"}, "boolean"),
    ({"userId": 42}, "string"),
    ({"userId": "u", "payload": 5}, "JSON string or object"),
])
def test_type_mismatch(params, expected):
    result = _run(params)
    assert result.errors[0].code == "invalid_value"
    assert result.errors[0].details["expected"] == expected


def test_expressions_skip_type_checks():
    assert _run({"userId": "u", "limit": "={{ $json.limit }}"}).valid is True


def test_invalid_option():
    result = _run({"userId": "u", "resource": "org"})
    assert result.errors[0].details["allowed"] == ["user", "team"]


def test_minimal_profile_only_reports_missing():
    result = _run({"resource": "user", "limit": "ten", "token": "abc"}, ValidationProfile.MINIMAL)
    assert [e.code for e in result.errors] == ["missing_required"]
    assert result.warnings == ()


def test_secret_in_nested_parameter():
    result = _run({"userId": "u", "auth": {"apiKey": "k"}}, ValidationProfile.RUNTIME)
    codes = [w.code for w in result.warnings]
    assert codes == ["hardcoded_secret"]


def test_internal_keys_are_not_unknown_parameters():
    result = _run({"userId": "u", "__meta": 1, "extra": 2}, ValidationProfile.AI_FRIENDLY)
    assert [w.details["property"] for w in result.warnings_with_code("unknown_parameter")] == ["extra"]
