"""Tests for condition evaluation and the conditions engine."""

from __future__ import annotations

import copy

from structlog.testing import capture_logs

from dynaform.lib.conditions import (
    DEFAULT_FIELD_STATE,
    ConditionsEngine,
    DerivedFieldState,
    evaluate_condition,
    evaluate_conditions,
    evaluate_field_logic,
    get_nested_value,
)
from dynaform.lib.schema import ConditionalLogic
from dynaform.lib.values import UNDEFINED


def cond(field, operator, value=UNDEFINED, values=None):
    condition = {"field": field, "operator": operator}
    if value is not UNDEFINED:
        condition["value"] = value
    if values is not None:
        condition["values"] = values
    return condition


class TestGetNestedValue:
    """Tests for dotted-path lookup."""

    def test_nested_lookup(self) -> None:
        data = {"user": {"profile": {"name": "Ann"}}}
        assert get_nested_value(data, "user.profile.name") == "Ann"

    def test_missing_segments_are_undefined(self) -> None:
        assert get_nested_value({"user": None}, "user.profile") is UNDEFINED
        assert get_nested_value({}, "a.b.c") is UNDEFINED
        assert get_nested_value({"a": "text"}, "a.length") is UNDEFINED

    def test_explicit_none_is_kept(self) -> None:
        assert get_nested_value({"a": None}, "a") is None

    def test_list_index_segments(self) -> None:
        data = {"items": ["a", "b"], "rows": [{"qty": 3}], "pair": (1, 2)}
        assert get_nested_value(data, "items.1") == "b"
        assert get_nested_value(data, "rows.0.qty") == 3
        assert get_nested_value(data, "pair.0") == 1

    def test_bad_list_index_is_undefined(self) -> None:
        data = {"items": ["a", "b"]}
        assert get_nested_value(data, "items.2") is UNDEFINED
        assert get_nested_value(data, "items.-1") is UNDEFINED
        assert get_nested_value(data, "items.first") is UNDEFINED
        assert get_nested_value(data, "items.length") is UNDEFINED


class TestEvaluateCondition:
    """Tests for single-condition evaluation."""

    def test_accepts_mappings_and_models(self) -> None:
        data = {"country": "US"}
        assert evaluate_condition(cond("country", "equals", "US"), data) is True
        logic = ConditionalLogic.model_validate({"show": [cond("country", "equals", "FR")]})
        assert evaluate_condition(logic.show[0], data) is False

    def test_path_through_list(self) -> None:
        data = {"contacts": [{"email": "a@b.co"}]}
        assert evaluate_condition(cond("contacts.0.email", "notEmpty"), data) is True
        assert evaluate_condition(cond("contacts.1.email", "empty"), data) is True

    def test_non_list_values_never_match(self) -> None:
        data = {"x": "a"}
        assert evaluate_condition(cond("x", "in", values="abc"), data) is False
        assert evaluate_condition(cond("x", "notIn", values="abc"), data) is True
        assert evaluate_condition(cond("x", "in", values={"a": 1}), data) is False
        assert evaluate_condition(cond("x", "notIn", values={"a": 1}), data) is True
        assert evaluate_condition(cond("x", "in", values=7), data) is False

    def test_non_list_values_are_logged(self) -> None:
        with capture_logs() as logs:
            evaluate_condition(cond("x", "in", values="abc"), {"x": "a"})
        assert any(entry["event"] == "condition_missing_values" for entry in logs)

    def test_unknown_operator_is_false_and_logged(self) -> None:
        with capture_logs() as logs:
            result = evaluate_condition(cond("a", "startsWith", "x"), {"a": "xyz"})
        assert result is False
        assert any(
            entry["event"] == "unknown_operator" and entry["operator"] == "startsWith"
            for entry in logs
        )

    def test_does_not_mutate_form_data(self) -> None:
        data = {"tags": ["a", "b"], "nested": {"x": 1}}
        before = copy.deepcopy(data)
        evaluate_condition(cond("tags", "contains", "a"), data)
        evaluate_condition(cond("nested.x", "gt", 0), data)
        assert data == before

    def test_is_deterministic(self) -> None:
        condition = cond("age", "gte", 18)
        data = {"age": "21"}
        assert {evaluate_condition(condition, data) for _ in range(5)} == {True}


class TestEvaluateConditions:
    """Tests for AND/OR combination."""

    def test_empty_list_is_true(self) -> None:
        for logic in ("and", "or"):
            assert evaluate_conditions([], {}, logic) is True
            assert evaluate_conditions(None, {"a": 1}, logic) is True

    def test_and_requires_all(self) -> None:
        conditions = [cond("a", "equals", 1), cond("b", "equals", 2)]
        assert evaluate_conditions(conditions, {"a": 1, "b": 2}) is True
        assert evaluate_conditions(conditions, {"a": 1, "b": 3}) is False

    def test_or_requires_any(self) -> None:
        conditions = [cond("a", "equals", 1), cond("b", "equals", 2)]
        assert evaluate_conditions(conditions, {"a": 0, "b": 2}, "or") is True
        assert evaluate_conditions(conditions, {"a": 0, "b": 0}, "or") is False

    def test_unknown_operator_does_not_abort(self) -> None:
        conditions = [cond("a", "bogus", 1), cond("b", "equals", 2)]
        with capture_logs() as logs:
            assert evaluate_conditions(conditions, {"b": 2}, "or") is True
        assert [entry["event"] for entry in logs].count("unknown_operator") == 1

    def test_every_condition_is_evaluated(self) -> None:
        conditions = [cond("a", "equals", 1), cond("b", "bogus", 2)]
        with capture_logs() as logs:
            assert evaluate_conditions(conditions, {"a": 1}, "or") is True
        assert any(entry["event"] == "unknown_operator" for entry in logs)


class TestEvaluateFieldLogic:
    """Tests for derived field state."""

    def test_empty_logic_is_permissive_default(self) -> None:
        assert evaluate_field_logic({}, {}) == DerivedFieldState(True, False, False)

    def test_show(self) -> None:
        logic = {"show": [cond("hasJob", "equals", True)]}
        assert evaluate_field_logic(logic, {"hasJob": True}).visible is True
        assert evaluate_field_logic(logic, {"hasJob": False}).visible is False

    def test_hide_dominates_show(self) -> None:
        logic = {
            "show": [cond("a", "equals", 1)],
            "hide": [cond("b", "equals", 1)],
        }
        assert evaluate_field_logic(logic, {"a": 2, "b": 1}).visible is False
        assert evaluate_field_logic(logic, {"a": 1, "b": 1}).visible is False
        assert evaluate_field_logic(logic, {"a": 1, "b": 0}).visible is True

    def test_required_and_disabled(self) -> None:
        logic = {
            "required": [cond("country", "in", values=["US", "CA"])],
            "disabled": [cond("locked", "equals", True)],
        }
        state = evaluate_field_logic(logic, {"country": "US", "locked": False})
        assert state == DerivedFieldState(visible=True, required=True, disabled=False)

    def test_logic_applies_to_every_list(self) -> None:
        logic = {
            "show": [cond("a", "equals", 1), cond("b", "equals", 1)],
            "required": [cond("a", "equals", 1), cond("b", "equals", 1)],
            "logic": "OR",
        }
        state = evaluate_field_logic(logic, {"a": 1, "b": 0})
        assert state.visible is True
        assert state.required is True


class TestConditionsEngine:
    """Tests for the cached per-form engine."""

    def test_unregistered_field_gets_default(self) -> None:
        engine = ConditionsEngine({"a": 1})
        assert engine.get_field_state("nothing") == DEFAULT_FIELD_STATE

    def test_state_matches_direct_evaluation(self) -> None:
        logic = {"show": [cond("age", "gte", 18)], "disabled": [cond("locked", "equals", True)]}
        engine = ConditionsEngine()
        engine.register_field_conditions("drink", logic)
        for data in ({"age": 21}, {"age": 10, "locked": True}, {}):
            engine.update_form_data(data)
            assert engine.get_field_state("drink") == evaluate_field_logic(logic, data)

    def test_cache_returns_same_result_until_update(self) -> None:
        engine = ConditionsEngine({"a": 1})
        engine.register_field_conditions("f", {"show": [cond("a", "equals", 1)]})
        first = engine.get_field_state("f")
        assert engine.get_field_state("f") is first
        engine.update_form_data({"a": 2})
        assert engine.get_field_state("f").visible is False

    def test_snapshot_is_copied(self) -> None:
        data = {"a": 1}
        engine = ConditionsEngine()
        engine.register_field_conditions("f", {"show": [cond("a", "equals", 1)]})
        engine.update_form_data(data)
        data["a"] = 2
        assert engine.get_field_state("f").visible is True
        assert engine.form_data == {"a": 1}

    def test_update_replaces_snapshot(self) -> None:
        engine = ConditionsEngine({"a": 1, "b": 2})
        engine.update_form_data({"b": 3})
        assert engine.form_data == {"b": 3}

    def test_reregister_evicts_only_that_field(self) -> None:
        engine = ConditionsEngine({"a": 1})
        engine.register_field_conditions("f", {"show": [cond("a", "equals", 1)]})
        engine.register_field_conditions("g", {"show": [cond("a", "equals", 1)]})
        g_state = engine.get_field_state("g")
        assert engine.get_field_state("f").visible is True

        engine.register_field_conditions("f", {"show": [cond("a", "equals", 2)]})
        assert engine.get_field_state("f").visible is False
        assert engine.get_field_state("g") is g_state

    def test_unregister(self) -> None:
        engine = ConditionsEngine({"a": 2})
        engine.register_field_conditions("f", {"show": [cond("a", "equals", 1)]})
        assert engine.get_field_state("f").visible is False
        engine.unregister_field_conditions("f")
        assert engine.get_field_state("f") == DEFAULT_FIELD_STATE
        assert engine.registered_fields == []

    def test_get_all_field_states(self) -> None:
        engine = ConditionsEngine({"a": 1})
        engine.register_field_conditions("f", {"show": [cond("a", "equals", 1)]})
        engine.register_field_conditions("g", {"hide": [cond("a", "equals", 1)]})
        states = engine.get_all_field_states()
        assert list(states) == ["f", "g"]
        assert states["f"].visible is True
        assert states["g"].visible is False

    def test_dependencies(self) -> None:
        engine = ConditionsEngine()
        engine.register_field_conditions(
            "f",
            {
                "show": [cond("a", "equals", 1), cond("b", "equals", 1)],
                "hide": [cond("a", "equals", 2)],
                "required": [cond("user.role", "equals", "admin")],
                "disabled": [cond("c", "empty")],
            },
        )
        assert engine.get_field_dependencies("f") == {"a", "b", "user.role", "c"}
        assert engine.get_field_dependencies("unknown") == set()

    def test_dependent_fields_in_registration_order(self) -> None:
        engine = ConditionsEngine()
        engine.register_field_conditions("z", {"show": [cond("a", "equals", 1)]})
        engine.register_field_conditions("m", {"hide": [cond("b", "equals", 1)]})
        engine.register_field_conditions("b", {"required": [cond("a", "notEmpty")]})
        assert engine.get_dependent_fields("a") == ["z", "b"]
        assert engine.get_dependent_fields("b") == ["m"]
        assert engine.get_dependent_fields("nobody") == []

    def test_derived_state_to_dict(self) -> None:
        state = DerivedFieldState(visible=False, required=True)
        assert state.to_dict() == {"visible": False, "required": True, "disabled": False}
