"""
Filter tree operations.

The filter state is a single root FilterGroup. Every operation here is pure:
it takes a root and returns a new root, rebuilding only the path from the
root to the affected node and sharing every untouched subtree. Ids that are
not in the tree make the operation a no-op (the same root object comes
back), never an error.
"""
import logging
from typing import Any, Callable, Dict, Iterator, Optional

from visualizer.core.config import settings
from visualizer.models.filters import FilterGroup, FilterNode, FilterRule
from visualizer.models.schema import Operator, VisualizerSchema
from visualizer.services.ids import new_id
from visualizer.services.operators import (
    coerce_value,
    default_operator,
    default_value,
    is_rule_complete,
)

logger = logging.getLogger(__name__)

RULE_PATCH_KEYS = ("field", "operator", "value")


def make_empty_group() -> FilterGroup:
    return FilterGroup(id=new_id("f"), logic="AND", rules=())


def make_empty_rule() -> FilterRule:
    return FilterRule(id=new_id("f"), field="", operator=Operator.EQ, value="")


def _replace_node(
    group: FilterGroup,
    node_id: str,
    replace: Callable[[FilterNode], FilterNode],
) -> FilterGroup:
    """Depth-first search for ``node_id``; rebuild the path to it with ``replace`` applied."""
    if group.id == node_id:
        return replace(group)

    for index, child in enumerate(group.rules):
        if child.id == node_id:
            new_child = replace(child)
        elif isinstance(child, FilterGroup):
            new_child = _replace_node(child, node_id, replace)
        else:
            continue

        if new_child is child:
            # Found but unchanged, or not in this subtree
            if child.id == node_id:
                return group
            continue
        rules = group.rules[:index] + (new_child,) + group.rules[index + 1:]
        return group.model_copy(update={"rules": rules})

    return group


def _append_child(node: FilterNode, child: FilterNode) -> FilterNode:
    if not isinstance(node, FilterGroup):
        return node
    return node.model_copy(update={"rules": node.rules + (child,)})


def add_rule(tree: FilterGroup, group_id: str) -> FilterGroup:
    """Append an empty rule to the group with ``group_id``."""
    return _replace_node(tree, group_id, lambda node: _append_child(node, make_empty_rule()))


def add_group(tree: FilterGroup, group_id: str) -> FilterGroup:
    """Append an empty AND group to the group with ``group_id``."""
    return _replace_node(tree, group_id, lambda node: _append_child(node, make_empty_group()))


def remove_node(tree: FilterGroup, node_id: str) -> FilterGroup:
    """
    Remove the rule or group with ``node_id`` from wherever it sits.

    The root has no parent and cannot be removed; callers reset the whole
    tree instead.
    """
    for index, child in enumerate(tree.rules):
        if child.id == node_id:
            return tree.model_copy(update={"rules": tree.rules[:index] + tree.rules[index + 1:]})
        if isinstance(child, FilterGroup):
            new_child = remove_node(child, node_id)
            if new_child is not child:
                rules = tree.rules[:index] + (new_child,) + tree.rules[index + 1:]
                return tree.model_copy(update={"rules": rules})
    return tree


def update_rule(tree: FilterGroup, rule_id: str, patch: Dict[str, Any]) -> FilterGroup:
    """
    Merge ``patch`` into the rule with ``rule_id``.

    Only ``field``, ``operator`` and ``value`` are taken from the patch. This
    does not reset the operator or value when the field changes; that is the
    job of the caller changing the field (see ``FilterBuilder.change_field``).
    """
    changes = {key: patch[key] for key in RULE_PATCH_KEYS if key in patch}
    if not changes:
        return tree

    if "operator" in changes:
        try:
            changes["operator"] = Operator(changes["operator"])
        except ValueError:
            logger.warning(f"Ignoring unknown operator {changes['operator']!r} for rule {rule_id}")
            return tree

    def apply(node: FilterNode) -> FilterNode:
        if not isinstance(node, FilterRule):
            return node
        if all(getattr(node, key) == value for key, value in changes.items()):
            return node
        return node.model_copy(update=changes)

    return _replace_node(tree, rule_id, apply)


def toggle_logic(tree: FilterGroup, group_id: str) -> FilterGroup:
    """Flip AND/OR on one group. Nested groups keep their own logic."""
    def flip(node: FilterNode) -> FilterNode:
        if not isinstance(node, FilterGroup):
            return node
        return node.model_copy(update={"logic": "OR" if node.logic == "AND" else "AND"})

    return _replace_node(tree, group_id, flip)


def find_node(tree: FilterGroup, node_id: str) -> Optional[FilterNode]:
    if tree.id == node_id:
        return tree
    for child in tree.rules:
        if child.id == node_id:
            return child
        if isinstance(child, FilterGroup):
            found = find_node(child, node_id)
            if found is not None:
                return found
    return None


def node_depth(tree: FilterGroup, node_id: str, _depth: int = 0) -> Optional[int]:
    """Depth of a node, root = 0. None when the id is not in the tree."""
    if tree.id == node_id:
        return _depth
    for child in tree.rules:
        if child.id == node_id:
            return _depth + 1
        if isinstance(child, FilterGroup):
            depth = node_depth(child, node_id, _depth + 1)
            if depth is not None:
                return depth
    return None


def iter_rules(tree: FilterGroup) -> Iterator[FilterRule]:
    """Yield every leaf rule, depth-first in display order."""
    for child in tree.rules:
        if isinstance(child, FilterGroup):
            yield from iter_rules(child)
        else:
            yield child


def count_rules(tree: FilterGroup) -> int:
    return sum(1 for _ in iter_rules(tree))


def prune_incomplete(tree: FilterGroup, schema: Optional[VisualizerSchema] = None) -> FilterGroup:
    """
    Copy of the tree without incomplete or malformed rules.

    Nested groups left with no rules are dropped too; the root is always
    kept. Used when serializing for execution, the editable tree keeps
    half-filled rules.
    """
    kept = []
    changed = False
    for child in tree.rules:
        if isinstance(child, FilterGroup):
            pruned = prune_incomplete(child, schema)
            if not pruned.rules:
                changed = True
                continue
            if pruned is not child:
                changed = True
            kept.append(pruned)
        elif is_rule_complete(child, schema):
            kept.append(child)
        else:
            changed = True

    if not changed:
        return tree
    return tree.model_copy(update={"rules": tuple(kept)})


class FilterBuilder:
    """
    Owns the filter tree of one builder session.

    Each method computes the new root with the pure operations above and
    installs it in a single assignment, so a half-rewritten tree is never
    observable. Methods return True when the tree changed.
    """

    def __init__(self, initial: Optional[FilterGroup] = None, max_depth: Optional[int] = None):
        self._root = initial if initial is not None else make_empty_group()
        self.max_depth = max_depth if max_depth is not None else settings.FILTER_MAX_DEPTH

    @property
    def root(self) -> FilterGroup:
        return self._root

    @property
    def is_empty(self) -> bool:
        return len(self._root.rules) == 0

    def _install(self, new_root: FilterGroup) -> bool:
        if new_root is self._root:
            return False
        self._root = new_root
        return True

    def add_rule(self, group_id: str) -> bool:
        return self._install(add_rule(self._root, group_id))

    def can_add_group(self, group_id: str) -> bool:
        """Nesting policy: a new group must stay within ``max_depth`` levels."""
        node = find_node(self._root, group_id)
        if not isinstance(node, FilterGroup):
            return False
        depth = node_depth(self._root, group_id)
        return depth is not None and depth + 1 < self.max_depth

    def add_group(self, group_id: str) -> bool:
        if not self.can_add_group(group_id):
            logger.debug(f"Not adding group under {group_id}: unknown id or nesting limit {self.max_depth} reached")
            return False
        return self._install(add_group(self._root, group_id))

    def remove_node(self, node_id: str) -> bool:
        return self._install(remove_node(self._root, node_id))

    def update_rule(self, rule_id: str, patch: Dict[str, Any]) -> bool:
        return self._install(update_rule(self._root, rule_id, patch))

    def change_field(self, rule_id: str, field: str, schema: Optional[VisualizerSchema] = None) -> bool:
        """
        Select a new field for a rule.

        The operator falls back to the first one valid for the new field's
        type and the value is cleared, so no operator/value pair from the
        previous field survives.
        """
        operator = default_operator(schema, field)
        patch = {"field": field, "operator": operator, "value": default_value(operator)}
        return self.update_rule(rule_id, patch)

    def change_operator(self, rule_id: str, operator: Operator) -> bool:
        """Select a new operator; the value is reset to the operator's empty shape."""
        try:
            operator = Operator(operator)
        except ValueError:
            logger.warning(f"Ignoring unknown operator {operator!r} for rule {rule_id}")
            return False
        return self.update_rule(rule_id, {"operator": operator, "value": default_value(operator)})

    def set_value(self, rule_id: str, value: Any, schema: Optional[VisualizerSchema] = None) -> bool:
        """Value-only edit, normalized to the rule's operator."""
        rule = find_node(self._root, rule_id)
        if not isinstance(rule, FilterRule):
            return False
        field_type = None
        if schema is not None:
            field_def = schema.get_field(rule.field)
            field_type = field_def.type if field_def else None
        return self.update_rule(rule_id, {"value": coerce_value(rule.operator, value, field_type)})

    def toggle_logic(self, group_id: str) -> bool:
        return self._install(toggle_logic(self._root, group_id))

    def reset(self) -> None:
        self._root = make_empty_group()
