"""WorkflowValidator — end-to-end validation scenarios.

Covers the documented behaviour of the aggregating validator:
  - empty and single-node workflows
  - referential integrity of connections (and the statistics that go with it)
  - error-output consistency and misplaced error handlers
  - expression checks and validation profiles
  - malformed input never raises
"""

from __future__ import annotations

import copy
import json

import pytest

from n8n_dev_agent.workflow import ValidationOptions, ValidationProfile


# ---------------------------------------------------------------------------
# Fixture data
# ---------------------------------------------------------------------------


def _node(name, node_type, version=1, node_id=None, x=0, **extra):
    node = {
        "id": node_id or f"id-{name.lower().replace(' ', '-')}",
        "name": name,
        "type": node_type,
        "typeVersion": version,
        "position": [x, 300],
        "parameters": {},
    }
    node.update(extra)
    return node


def _link(*targets, output="main"):
    return [[{"node": t, "type": output, "index": 0} for t in targets]]


_WEBHOOK = _node("A", "n8n-nodes-base.webhook", 2, parameters={"path": "incoming"})
_SET = _node("B", "n8n-nodes-base.set", 3.4, x=220)

_TWO_NODE = {
    "nodes": [_WEBHOOK, _SET],
    "connections": {"A": {"main": _link("B")}},
}


def _codes(issues):
    return [i.code for i in issues]


# ---------------------------------------------------------------------------
# Basic shapes
# ---------------------------------------------------------------------------


class TestWorkflowShapes:
    def test_zero_nodes_is_valid_with_empty_warning(self, validator):
        result = validator.validate({"nodes": [], "connections": {}})
        assert result.valid is True
        assert result.errors == ()
        assert "empty_workflow" in _codes(result.warnings)
        assert result.statistics.total_nodes == 0

    def test_single_non_trigger_node_is_invalid(self, validator):
        result = validator.validate({"nodes": [_SET], "connections": {}})
        assert result.valid is False
        assert "single_node_workflow" in _codes(result.errors)

    def test_single_trigger_node_is_valid_with_warning(self, validator):
        result = validator.validate({"nodes": [_WEBHOOK], "connections": {}})
        assert result.valid is True
        assert "trigger_without_connections" in _codes(result.warnings)

    def test_two_connected_nodes_are_valid(self, validator):
        result = validator.validate(_TWO_NODE)
        assert result.valid is True
        assert result.errors == ()
        assert result.statistics.valid_connections == 1
        assert result.statistics.invalid_connections == 0
        assert result.statistics.trigger_nodes == 1
        assert result.statistics.total_nodes == 2

    def test_multi_node_without_connections_is_invalid(self, validator):
        result = validator.validate({"nodes": [_WEBHOOK, _SET], "connections": {}})
        assert "empty_connections" in _codes(result.errors)

    def test_sticky_note_does_not_count_as_executable(self, validator):
        sticky = _node("Note", "n8n-nodes-base.stickyNote", x=500)
        result = validator.validate({"nodes": [_WEBHOOK, sticky], "connections": {}})
        assert result.valid is True
        assert "orphaned_node" not in _codes(result.warnings)

    def test_no_trigger_warning(self, validator):
        code = _node("C", "n8n-nodes-base.code", 2, x=440)
        wf = {"nodes": [_SET, code], "connections": {"B": {"main": _link("C")}}}
        result = validator.validate(wf)
        assert "no_trigger" in _codes(result.warnings)
        assert any("trigger" in s.lower() for s in result.suggestions)


# ---------------------------------------------------------------------------
# Connections
# ---------------------------------------------------------------------------


class TestConnections:
    def test_missing_target_is_reported_once_and_siblings_still_count(self, validator):
        wf = copy.deepcopy(_TWO_NODE)
        wf["connections"]["A"]["main"] = _link("B", "C")
        result = validator.validate(wf)

        assert result.valid is False
        missing = result.errors_with_code("unknown_connection_target")
        assert len(missing) == 1
        assert len(result.errors) == 1
        assert 'non-existent node: "C"' in missing[0].message
        assert missing[0].node_name == "A"
        assert result.statistics.valid_connections == 1
        assert result.statistics.invalid_connections == 1

    def test_removing_the_bad_connection_makes_it_valid(self, validator):
        wf = copy.deepcopy(_TWO_NODE)
        wf["connections"]["A"]["main"] = _link("B", "C")
        assert validator.validate(wf).valid is False

        wf["connections"]["A"]["main"] = _link("B")
        assert validator.validate(wf).valid is True

    def test_unknown_source(self, validator):
        wf = copy.deepcopy(_TWO_NODE)
        wf["connections"]["Ghost"] = {"main": _link("B")}
        result = validator.validate(wf)
        assert "unknown_connection_source" in _codes(result.errors)

    def test_connection_keyed_by_id_is_explained(self, validator):
        wf = copy.deepcopy(_TWO_NODE)
        wf["connections"] = {"id-a": {"main": _link("B")}}
        result = validator.validate(wf)
        errors = result.errors_with_code("connection_uses_id")
        assert errors
        assert '"A"' in errors[0].message

    def test_negative_index_is_invalid(self, validator):
        wf = copy.deepcopy(_TWO_NODE)
        wf["connections"]["A"]["main"][0][0]["index"] = -1
        result = validator.validate(wf)
        assert "invalid_connection_index" in _codes(result.errors)

    def test_self_reference_warns(self, validator):
        wf = copy.deepcopy(_TWO_NODE)
        wf["connections"]["B"] = {"main": _link("B")}
        result = validator.validate(wf)
        assert [w.node_name for w in result.warnings_with_code("self_reference")] == ["B"]
        assert result.statistics.valid_connections == 2

    @pytest.mark.parametrize("outputs", [["oops"], "main", {"main": "B"}, {"main": ["B"]}])
    def test_non_object_connection_shapes_are_errors(self, validator, outputs):
        wf = copy.deepcopy(_TWO_NODE)
        wf["connections"]["A"] = outputs
        result = validator.validate(wf)
        assert result.valid is False
        assert "malformed_connection" in _codes(result.errors)

    def test_connection_to_disabled_node_warns_but_counts(self, validator):
        wf = copy.deepcopy(_TWO_NODE)
        wf["nodes"][1]["disabled"] = True
        result = validator.validate(wf)
        assert "connection_to_disabled" in _codes(result.warnings)
        assert result.statistics.valid_connections == 1

    def test_ai_tool_into_non_agent_is_an_error(self, validator):
        tool = _node("Tool", "@n8n/n8n-nodes-langchain.toolCode", 1.1, x=440)
        wf = copy.deepcopy(_TWO_NODE)
        wf["nodes"].append(tool)
        wf["connections"]["Tool"] = {"ai_tool": _link("B", output="ai_tool")}
        result = validator.validate(wf)
        assert "invalid_ai_tool_target" in _codes(result.errors)

    def test_ai_tool_into_agent_is_valid(self, validator):
        trigger = _node("Chat", "n8n-nodes-base.manualTrigger")
        agent = _node("Agent", "@n8n/n8n-nodes-langchain.agent", 1.7, x=220)
        tool = _node("Tool", "@n8n/n8n-nodes-langchain.toolCode", 1.1, x=440)
        wf = {
            "nodes": [trigger, agent, tool],
            "connections": {
                "Chat": {"main": _link("Agent")},
                "Tool": {"ai_tool": _link("Agent", output="ai_tool")},
            },
        }
        result = validator.validate(wf)
        assert result.valid is True, result.errors
        assert result.statistics.valid_connections == 2


# ---------------------------------------------------------------------------
# Error outputs
# ---------------------------------------------------------------------------


def _error_output_workflow():
    http = _node(
        "Fetch", "n8n-nodes-base.httpRequest", 4.2, x=220,
        parameters={"url": "https://example.com/api"},
        onError="continueErrorOutput",
    )
    notify = _node("Notify", "n8n-nodes-base.noOp", x=440)
    done = _node("Done", "n8n-nodes-base.set", 3.4, x=660)
    return {
        "nodes": [_WEBHOOK, http, notify, done],
        "connections": {
            "A": {"main": _link("Fetch", "Notify")},
            "Fetch": {"main": _link("Done")},
        },
    }


class TestErrorOutputs:
    def test_on_error_without_error_connection(self, validator):
        result = validator.validate(_error_output_workflow())
        errors = result.errors_with_code("error_output_missing")
        assert len(errors) == 1
        assert errors[0].node_name == "Fetch"
        assert "main[1]" in errors[0].message

    def test_adding_the_error_connection_via_diff_clears_only_that_error(self, validator, engine):
        wf = _error_output_workflow()
        before = validator.validate(wf)

        diff = engine.apply_operations(wf, [{
            "type": "addConnection", "source": "Fetch", "target": "Notify", "sourceIndex": 1,
        }])
        assert diff.success, diff.errors
        after = diff.validation_result

        assert "error_output_missing" not in _codes(after.errors)
        assert len(after.errors) == len(before.errors) - 1
        assert sorted(_codes(after.warnings)) == sorted(_codes(before.warnings))

    def test_error_connection_without_on_error_warns(self, validator):
        wf = _error_output_workflow()
        del wf["nodes"][1]["onError"]
        wf["connections"]["Fetch"]["main"].append([{"node": "Notify", "type": "main", "index": 0}])
        result = validator.validate(wf)
        assert "error_output_without_on_error" in _codes(result.warnings)

    def test_if_node_second_output_is_not_an_error_output(self, validator):
        branch = _node("Check", "n8n-nodes-base.if", 2, x=220)
        yes = _node("Yes", "n8n-nodes-base.noOp", x=440)
        no = _node("No", "n8n-nodes-base.noOp", x=440)
        wf = {
            "nodes": [_WEBHOOK, branch, yes, no],
            "connections": {
                "A": {"main": _link("Check")},
                "Check": {"main": [[{"node": "Yes", "type": "main", "index": 0}],
                                   [{"node": "No", "type": "main", "index": 0}]]},
            },
        }
        result = validator.validate(wf)
        assert "error_output_without_on_error" not in _codes(result.warnings)

    def test_misplaced_error_handler_is_explained(self, validator):
        http = _node("Fetch", "n8n-nodes-base.httpRequest", 4.2, parameters={"url": "https://x.io"})
        done = _node("Done", "n8n-nodes-base.noOp")
        handler = _node("Handle Error", "n8n-nodes-base.noOp")
        wf = {
            "nodes": [_WEBHOOK, http, done, handler],
            "connections": {
                "A": {"main": _link("Fetch")},
                "Fetch": {"main": _link("Done", "Handle Error")},
            },
        }
        result = validator.validate(wf)
        errors = result.errors_with_code("misplaced_error_handler")
        assert len(errors) == 1
        message = errors[0].message
        assert "INCORRECT (current)" in message
        assert "CORRECT (should be)" in message
        assert "main[1] = error output" in message
        assert errors[0].details["errorHandlers"] == ["Handle Error"]


# ---------------------------------------------------------------------------
# Node checks
# ---------------------------------------------------------------------------


class TestNodeChecks:
    def test_duplicate_names(self, validator):
        wf = copy.deepcopy(_TWO_NODE)
        wf["nodes"][1]["name"] = "A"
        result = validator.validate(wf)
        assert "duplicate_name" in _codes(result.errors)

    def test_short_type_prefix(self, validator):
        wf = copy.deepcopy(_TWO_NODE)
        wf["nodes"][1]["type"] = "nodes-base.set"
        result = validator.validate(wf)
        errors = result.errors_with_code("invalid_type_prefix")
        assert errors[0].details["suggestedType"] == "n8n-nodes-base.set"

    def test_unknown_type_suggests_close_match(self, validator):
        wf = copy.deepcopy(_TWO_NODE)
        wf["nodes"][1]["type"] = "n8n-nodes-base.httpRequst"
        result = validator.validate(wf)
        errors = result.errors_with_code("unknown_node_type")
        assert "n8n-nodes-base.httpRequest" in errors[0].details["suggestions"]

    def test_type_version_exceeds_maximum(self, validator):
        code = _node("Code", "n8n-nodes-base.code", 3.5, x=220)
        wf = {"nodes": [_WEBHOOK, code], "connections": {"A": {"main": _link("Code")}}}
        result = validator.validate(wf)
        errors = result.errors_with_code("typeversion_exceeds_max")
        assert errors[0].details == {"currentVersion": 3.5, "maxVersion": 2}

    def test_missing_type_version(self, validator):
        wf = copy.deepcopy(_TWO_NODE)
        del wf["nodes"][1]["typeVersion"]
        result = validator.validate(wf)
        assert "missing_typeversion" in _codes(result.errors)

    def test_node_property_inside_parameters(self, validator):
        wf = copy.deepcopy(_TWO_NODE)
        wf["nodes"][1]["parameters"] = {"onError": "continueRegularOutput"}
        result = validator.validate(wf)
        assert "misplaced_node_property" in _codes(result.errors)

    def test_invalid_position(self, validator):
        wf = copy.deepcopy(_TWO_NODE)
        wf["nodes"][1]["position"] = [1]
        result = validator.validate(wf)
        assert "invalid_position" in _codes(result.errors)

    @pytest.mark.parametrize("position", [[float("nan"), 300], [220, float("inf")], [True, 300]])
    def test_non_finite_position(self, validator, position):
        wf = copy.deepcopy(_TWO_NODE)
        wf["nodes"][1]["position"] = position
        errors = validator.validate(wf).errors_with_code("invalid_position")
        assert [e.node_name for e in errors] == ["B"]

    def test_long_name_warns(self, validator):
        long_name = "Set " + "x" * 100
        wf = copy.deepcopy(_TWO_NODE)
        wf["nodes"][1]["name"] = long_name
        wf["connections"]["A"]["main"] = _link(long_name)
        result = validator.validate(wf)
        assert result.valid is True
        assert _codes(result.warnings_with_code("name_too_long")) == ["name_too_long"]


# ---------------------------------------------------------------------------
# Expressions
# ---------------------------------------------------------------------------


class TestExpressions:
    def _http_workflow(self, url):
        http = _node("Fetch", "n8n-nodes-base.httpRequest", 4.2, x=220, parameters={"url": url})
        return {"nodes": [_WEBHOOK, http], "connections": {"A": {"main": _link("Fetch")}}}

    def test_missing_prefix_is_an_error_with_suggestion(self, validator):
        result = validator.validate(self._http_workflow("{{ $json.url }}"))
        errors = result.errors_with_code("expression_missing_prefix")
        assert len(errors) == 1
        assert errors[0].details["correctedValue"] == "={{ $json.url }}"
        assert errors[0].details["fieldPath"] == "url"
        assert result.statistics.expressions_validated == 1

    def test_prefixed_expression_is_valid(self, validator):
        result = validator.validate(self._http_workflow("={{ $json.url }}"))
        assert result.valid is True

    def test_reference_to_missing_node(self, validator):
        result = validator.validate(self._http_workflow("={{ $node[\"Nope\"].json.url }}"))
        errors = result.errors_with_code("expression_unknown_node")
        assert errors and errors[0].details["reference"] == "Nope"

    def test_expressions_only_skips_other_dimensions(self, validator):
        result = validator.validate_expressions_only(self._http_workflow("{{ $json.url }}"))
        assert _codes(result.errors) == ["expression_missing_prefix"]
        assert result.statistics.valid_connections == 0


# ---------------------------------------------------------------------------
# Profiles
# ---------------------------------------------------------------------------


class TestProfiles:
    def _workflow(self, **params):
        http = _node("Fetch", "n8n-nodes-base.httpRequest", 4.2, x=220, parameters=params)
        return {"nodes": [_WEBHOOK, http], "connections": {"A": {"main": _link("Fetch")}}}

    def test_missing_required_in_every_profile(self, validator):
        for profile in ValidationProfile:
            result = validator.validate(self._workflow(), ValidationOptions(profile=profile))
            assert "missing_required" in _codes(result.errors), profile

    def test_unknown_parameter_only_in_advisory_profiles(self, validator):
        wf = self._workflow(url="https://x.io", colour="blue")
        runtime = validator.validate(wf, ValidationOptions(profile=ValidationProfile.RUNTIME))
        ai = validator.validate(wf, ValidationOptions(profile=ValidationProfile.AI_FRIENDLY))
        assert "unknown_parameter" not in _codes(runtime.warnings)
        assert "unknown_parameter" in _codes(ai.warnings)

    def test_strict_asks_for_error_handling_on_external_nodes(self, validator):
        wf = self._workflow(url="https://x.io")
        strict = validator.validate(wf, ValidationOptions(profile=ValidationProfile.STRICT))
        runtime = validator.validate(wf)
        assert "missing_error_handling" in _codes(strict.warnings)
        assert "missing_error_handling" not in _codes(runtime.warnings)

    def test_hardcoded_secret_warns_outside_minimal(self, validator):
        wf = self._workflow(url="https://x.io", apiKey="sk-live-123")
        runtime = validator.validate(wf)
        minimal = validator.validate(wf, ValidationOptions(profile=ValidationProfile.MINIMAL))
        secrets = runtime.warnings_with_code("hardcoded_secret")
        assert secrets and secrets[0].details == {"property": "apiKey"}
        assert runtime.valid is True
        assert minimal.warnings_with_code("hardcoded_secret") == []

    def test_invalid_option_value(self, validator):
        result = validator.validate(self._workflow(url="https://x.io", method="FETCH"))
        assert "invalid_value" in _codes(result.errors)

    def test_hidden_required_property_is_not_checked(self, validator):
        wf = copy.deepcopy(_TWO_NODE)
        wf["nodes"][1]["parameters"] = {"mode": "raw"}
        assert "missing_required" in _codes(validator.validate(wf).errors)
        wf["nodes"][1]["parameters"] = {"mode": "manual"}
        assert "missing_required" not in _codes(validator.validate(wf).errors)

    def test_options_from_dict_accepts_camel_case(self):
        opts = ValidationOptions.from_dict({"validateNodes": False, "profile": "strict"})
        assert opts.validate_nodes is False
        assert opts.validate_connections is True
        assert opts.profile is ValidationProfile.STRICT


# ---------------------------------------------------------------------------
# Malformed input
# ---------------------------------------------------------------------------


class TestMalformedInput:
    @pytest.mark.parametrize("raw", [None, 42, "not json", {"nodes": "x"}, {"nodes": [], "connections": []}])
    def test_malformed_input_never_raises(self, validator, raw):
        result = validator.validate(raw)
        assert result.valid is False
        assert len(result.errors) == 1
        assert result.errors[0].code == "invalid_structure"
        assert result.errors[0].message.startswith("Invalid workflow structure")

    def test_json_string_input(self, validator):
        result = validator.validate(json.dumps(_TWO_NODE))
        assert result.valid is True

    def test_to_dict_is_json_serializable(self, validator):
        wf = copy.deepcopy(_TWO_NODE)
        wf["connections"]["A"]["main"] = _link("B", "C")
        payload = validator.validate(wf).to_dict()
        assert json.loads(json.dumps(payload))["valid"] is False
        assert payload["statistics"]["validConnections"] == 1

    def test_self_containing_parameters_do_not_raise(self, validator):
        wf = copy.deepcopy(_TWO_NODE)
        params = wf["nodes"][1]["parameters"]
        params["self"] = params
        result = validator.validate(wf)
        assert result.valid is True

    def test_circular_connection_entry_is_a_structural_failure(self, validator):
        handler = _node("Handle Error", "n8n-nodes-base.noOp", 1, x=440)
        target = {"node": "Handle Error", "type": "main", "index": 0}
        target["self"] = target
        wf = {
            "nodes": [_WEBHOOK, _SET, handler],
            "connections": {"A": {"main": [[{"node": "B", "type": "main", "index": 0}, target]]}},
        }
        result = validator.validate(wf)
        assert result.valid is False
        assert _codes(result.errors) == ["invalid_structure"]


# ---------------------------------------------------------------------------
# Node-level execution policy
# ---------------------------------------------------------------------------


def _policy_codes(validator, **fields):
    wf = copy.deepcopy(_TWO_NODE)
    wf["nodes"][1].update(fields)
    result = validator.validate(wf)
    return _codes(result.errors), _codes(result.warnings)


class TestNodePolicy:
    def test_invalid_on_error(self, validator):
        errors, _ = _policy_codes(validator, onError="ignore")
        assert "invalid_on_error" in errors

    def test_deprecated_continue_on_fail(self, validator):
        _, warnings = _policy_codes(validator, continueOnFail=True)
        assert "deprecated_continue_on_fail" in warnings

    def test_conflicting_error_handling(self, validator):
        errors, _ = _policy_codes(validator, continueOnFail=True, onError="stopWorkflow")
        assert "conflicting_error_handling" in errors

    def test_retry_settings(self, validator):
        errors, warnings = _policy_codes(validator, retryOnFail=True, maxTries=20, waitBetweenTries=-1)
        assert "excessive_retries" in warnings
        assert "invalid_node_property" in errors
