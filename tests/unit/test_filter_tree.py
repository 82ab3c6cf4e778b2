"""Tests for filter tree operations."""
import pytest

from visualizer.models.filters import FilterGroup, FilterRule
from visualizer.models.schema import Operator
from visualizer.services import filter_tree
from visualizer.services.filter_tree import (
    FilterBuilder,
    add_group,
    add_rule,
    count_rules,
    find_node,
    iter_rules,
    make_empty_group,
    make_empty_rule,
    node_depth,
    prune_incomplete,
    remove_node,
    toggle_logic,
    update_rule,
)


@pytest.fixture
def tree():
    """Root with one rule and one nested group holding a rule."""
    root = make_empty_group()
    root = add_rule(root, root.id)
    root = add_group(root, root.id)
    nested = root.rules[1]
    root = add_rule(root, nested.id)
    return root


def test_make_empty_nodes():
    """Empty rule and group have the documented defaults and distinct ids."""
    group = make_empty_group()
    rule = make_empty_rule()

    assert group.kind == "group"
    assert group.logic == "AND"
    assert group.rules == ()
    assert rule.kind == "rule"
    assert rule.field == ""
    assert rule.operator == Operator.EQ
    assert rule.value == ""
    assert rule.is_incomplete
    assert group.id != rule.id
    assert group.id.startswith("f_")


def test_add_rule_appends_to_target_group(tree):
    """A new rule lands at the end of the located group."""
    nested = tree.rules[1]
    updated = add_rule(tree, nested.id)

    assert len(updated.rules[1].rules) == 2
    assert isinstance(updated.rules[1].rules[-1], FilterRule)
    assert updated.rules[1].rules[-1].field == ""


def test_operations_leave_input_untouched(tree):
    """Every operation returns a new root; the input tree is unchanged."""
    snapshot = tree.model_dump()
    rule_id = tree.rules[0].id
    nested_id = tree.rules[1].id

    add_rule(tree, nested_id)
    add_group(tree, tree.id)
    remove_node(tree, rule_id)
    update_rule(tree, rule_id, {"field": "call_analysis_v2.status"})
    toggle_logic(tree, nested_id)

    assert tree.model_dump() == snapshot


def test_untouched_subtrees_are_shared(tree):
    """Only the path to the edited node is rebuilt."""
    rule_id = tree.rules[0].id
    updated = update_rule(tree, rule_id, {"field": "call_analysis_v2.status"})

    assert updated is not tree
    assert updated.rules[0] is not tree.rules[0]
    assert updated.rules[1] is tree.rules[1]


def test_add_then_remove_round_trip(tree):
    """Adding a rule and removing it gives back an equal tree."""
    nested_id = tree.rules[1].id
    added = add_rule(tree, nested_id)
    new_rule_id = added.rules[1].rules[-1].id

    restored = remove_node(added, new_rule_id)

    assert restored.model_dump() == tree.model_dump()


@pytest.mark.parametrize("operation, args", [
    (add_rule, ()),
    (add_group, ()),
    (remove_node, ()),
    (toggle_logic, ()),
    (update_rule, ({"field": "call_analysis_v2.status"},)),
])
def test_unknown_id_is_a_no_op(tree, operation, args):
    """Unknown ids return the very same root."""
    assert operation(tree, "f_missing", *args) is tree


def test_remove_root_is_a_no_op(tree):
    """The root cannot be removed."""
    assert remove_node(tree, tree.id) is tree


def test_remove_nested_group_drops_its_children(tree):
    """Removing a group removes its whole subtree."""
    nested = tree.rules[1]
    updated = remove_node(tree, nested.id)

    assert len(updated.rules) == 1
    assert find_node(updated, nested.rules[0].id) is None


def test_update_rule_only_merges_rule_keys(tree):
    """id and kind are never patched."""
    rule = tree.rules[0]
    updated = update_rule(tree, rule.id, {"id": "other", "kind": "group", "value": "x"})

    patched = updated.rules[0]
    assert patched.id == rule.id
    assert patched.kind == "rule"
    assert patched.value == "x"


def test_update_rule_does_not_reset_operator(tree):
    """Changing the field through update_rule keeps operator and value."""
    rule_id = tree.rules[0].id
    tree = update_rule(tree, rule_id, {"operator": "gt", "value": 5})
    updated = update_rule(tree, rule_id, {"field": "call_analysis_v2.duration"})

    assert updated.rules[0].operator == Operator.GT
    assert updated.rules[0].value == 5


def test_update_rule_on_group_id_is_a_no_op(tree):
    """Patching a group id changes nothing."""
    assert update_rule(tree, tree.rules[1].id, {"field": "x"}) is tree


def test_update_rule_with_unknown_operator_is_a_no_op(tree):
    """An operator outside the enum is ignored."""
    assert update_rule(tree, tree.rules[0].id, {"operator": "like"}) is tree


def test_update_rule_with_same_values_is_a_no_op(tree):
    """A patch that changes nothing returns the same root."""
    rule = tree.rules[0]
    assert update_rule(tree, rule.id, {"field": rule.field, "value": rule.value}) is tree


def test_toggle_logic_affects_only_target_group(tree):
    """Nested groups keep their own logic."""
    nested_id = tree.rules[1].id
    updated = toggle_logic(tree, nested_id)

    assert updated.logic == "AND"
    assert updated.rules[1].logic == "OR"
    assert toggle_logic(updated, nested_id).rules[1].logic == "AND"


def test_toggle_logic_on_rule_id_is_a_no_op(tree):
    """Rules have no logic to flip."""
    assert toggle_logic(tree, tree.rules[0].id) is tree


def test_find_node_and_depth(tree):
    """Lookup helpers walk the whole tree."""
    nested = tree.rules[1]
    deep_rule = nested.rules[0]

    assert find_node(tree, tree.id) is tree
    assert find_node(tree, deep_rule.id) is deep_rule
    assert node_depth(tree, tree.id) == 0
    assert node_depth(tree, nested.id) == 1
    assert node_depth(tree, deep_rule.id) == 2
    assert node_depth(tree, "f_missing") is None


def test_iter_and_count_rules(tree):
    """Leaf rules are yielded depth-first."""
    rules = list(iter_rules(tree))

    assert [r.id for r in rules] == [tree.rules[0].id, tree.rules[1].rules[0].id]
    assert count_rules(tree) == 2


def test_wire_names_round_trip(tree):
    """The tree survives a round trip through its wire form."""
    wire = tree.model_dump(mode="json", by_alias=True)

    assert wire["type"] == "group"
    assert wire["rules"][0]["type"] == "rule"
    assert wire["rules"][1]["type"] == "group"
    assert FilterGroup.model_validate(wire) == tree


class TestPruneIncomplete:
    """Tests for serialization-time pruning."""

    def test_drops_rules_without_field(self, tree):
        """Incomplete rules and groups left empty disappear."""
        pruned = prune_incomplete(tree)

        assert pruned.id == tree.id
        assert pruned.rules == ()

    def test_keeps_complete_rules(self, tree):
        """Complete rules survive; the editable tree is unchanged."""
        rule_id = tree.rules[0].id
        tree = update_rule(tree, rule_id, {"field": "call_analysis_v2.status", "value": "open"})

        pruned = prune_incomplete(tree)

        assert [r.id for r in pruned.rules] == [rule_id]
        assert count_rules(tree) == 2

    def test_unchanged_tree_is_returned_as_is(self):
        """Nothing to prune returns the same object."""
        root = make_empty_group()
        root = add_rule(root, root.id)
        root = update_rule(root, root.rules[0].id, {"field": "call_analysis_v2.status"})

        assert prune_incomplete(root) is root

    def test_schema_drops_malformed_rules(self, tree, schema):
        """Unknown fields, non-filterable fields and disallowed operators are dropped."""
        rule_id = tree.rules[0].id
        deep_id = tree.rules[1].rules[0].id
        tree = update_rule(tree, rule_id, {"field": "call_tags.tag_name", "operator": "eq"})
        tree = update_rule(tree, deep_id, {"field": "call_analysis_v2.duration", "operator": "contains"})
        assert prune_incomplete(tree, schema).rules == ()

        tree = update_rule(tree, deep_id, {"operator": "gt", "value": 60})
        pruned = prune_incomplete(tree, schema)
        assert len(pruned.rules) == 1
        assert pruned.rules[0].rules[0].id == deep_id


class TestFilterBuilder:
    """Tests for the stateful builder."""

    def test_starts_empty(self):
        """A new builder holds an empty AND root."""
        builder = FilterBuilder()

        assert builder.is_empty
        assert builder.root.logic == "AND"

    def test_operations_report_changes(self):
        """Methods return True only when the root changed."""
        builder = FilterBuilder()
        root_id = builder.root.id

        assert builder.add_rule(root_id) is True
        assert builder.add_rule("f_missing") is False
        rule_id = builder.root.rules[0].id
        assert builder.remove_node(rule_id) is True
        assert builder.remove_node(rule_id) is False
        assert builder.toggle_logic(root_id) is True
        assert builder.root.logic == "OR"

    def test_installs_new_root_object(self):
        """Observers holding the old root keep the old state."""
        builder = FilterBuilder()
        before = builder.root
        builder.add_rule(before.id)

        assert before.rules == ()
        assert len(builder.root.rules) == 1

    def test_nesting_cap(self):
        """Groups may nest up to max_depth levels, root included."""
        builder = FilterBuilder(max_depth=3)
        group_id = builder.root.id

        assert builder.add_group(group_id) is True
        level1 = builder.root.rules[0].id
        assert builder.add_group(level1) is True
        level2 = builder.root.rules[0].rules[0].id

        assert builder.can_add_group(level2) is False
        assert builder.add_group(level2) is False
        assert builder.add_rule(level2) is True

    def test_can_add_group_rejects_rules_and_unknown_ids(self):
        """Only existing groups can receive a nested group."""
        builder = FilterBuilder()
        builder.add_rule(builder.root.id)

        assert builder.can_add_group(builder.root.rules[0].id) is False
        assert builder.can_add_group("f_missing") is False

    def test_change_field_resets_operator_and_value(self, schema):
        """Selecting a field picks its first operator and clears the value."""
        builder = FilterBuilder()
        builder.add_rule(builder.root.id)
        rule_id = builder.root.rules[0].id
        builder.update_rule(rule_id, {"operator": "gt", "value": 10})

        assert builder.change_field(rule_id, "call_analysis_v2.created_at", schema) is True
        rule = builder.root.rules[0]
        assert rule.field == "call_analysis_v2.created_at"
        assert rule.operator == Operator.DATE_PRESET
        assert rule.value == ""

        builder.change_field(rule_id, "call_analysis_v2.agent_name", schema)
        assert builder.root.rules[0].operator == Operator.CONTAINS

    def test_change_field_without_schema_defaults_to_eq(self):
        """No catalog means eq with an empty value."""
        builder = FilterBuilder()
        builder.add_rule(builder.root.id)
        rule_id = builder.root.rules[0].id

        builder.change_field(rule_id, "anything")

        assert builder.root.rules[0].operator == Operator.EQ
        assert builder.root.rules[0].value == ""

    def test_change_operator_resets_value(self):
        """The value takes the new operator's empty shape."""
        builder = FilterBuilder()
        builder.add_rule(builder.root.id)
        rule_id = builder.root.rules[0].id
        builder.update_rule(rule_id, {"field": "call_analysis_v2.duration", "value": 5})

        builder.change_operator(rule_id, Operator.BETWEEN)
        assert builder.root.rules[0].value == ["", ""]

        builder.change_operator(rule_id, Operator.IS_NULL)
        assert builder.root.rules[0].value is None

        assert builder.change_operator(rule_id, "like") is False

    def test_set_value_coerces_to_operator_shape(self, schema):
        """List operators split comma-separated text."""
        builder = FilterBuilder()
        builder.add_rule(builder.root.id)
        rule_id = builder.root.rules[0].id
        builder.change_field(rule_id, "call_analysis_v2.status", schema)
        builder.change_operator(rule_id, Operator.IN)

        assert builder.set_value(rule_id, "open, closed,", schema) is True
        assert builder.root.rules[0].value == ["open", "closed"]
        assert builder.set_value(builder.root.id, "x", schema) is False

    def test_reset(self):
        """Reset installs a fresh empty root."""
        builder = FilterBuilder()
        old_id = builder.root.id
        builder.add_rule(old_id)

        builder.reset()

        assert builder.is_empty
        assert builder.root.id != old_id

    def test_default_max_depth_from_settings(self, monkeypatch):
        """The nesting cap is configurable."""
        monkeypatch.setattr(filter_tree.settings, "FILTER_MAX_DEPTH", 2)

        assert FilterBuilder().max_depth == 2
