# /botengine/workflows/validator.py

"""
Pure validation functions for tenant-authored menu and flow configuration.

The engine itself tolerates bad configuration (it degrades to pass-through or
non-matching edges); these checks exist so editors can reject mistakes before
they are saved.

All functions are:
- Pure (no side effects)
- Deterministic (same input = same output)
- No database access
- No logging
"""

import re
from typing import List, Optional, TypedDict

from botengine.models.flow import ConditionType, FlowEdge
from botengine.models.menu import MenuOption
from botengine.workflows.commands import GLOBAL_COMMANDS


class ValidationResult(TypedDict):
    """Result of a validation check."""
    is_valid: bool
    error_code: Optional[str]
    message: Optional[str]


def _ok() -> ValidationResult:
    return {"is_valid": True, "error_code": None, "message": None}


def _fail(code: str, message: str) -> ValidationResult:
    return {"is_valid": False, "error_code": code, "message": message}


def validate_menu(
    menu_key: str,
    options: List[MenuOption],
    parent_menu_key: Optional[str] = None,
) -> ValidationResult:
    """
    Validate a menu definition.

    Checks the key, that the menu has options, that labels are unique, that
    nothing points back at the menu itself and that no label or keyword is
    shadowed by a global navigation command.
    """
    if not menu_key or not menu_key.strip():
        return _fail("EMPTY_MENU_KEY", "Menu key cannot be empty")

    if parent_menu_key and parent_menu_key == menu_key:
        return _fail("SELF_PARENT", f"Menu '{menu_key}' cannot be its own parent")

    if not options:
        return _fail("NO_OPTIONS", f"Menu '{menu_key}' has no options")

    reserved = set()
    for keywords, _ in GLOBAL_COMMANDS:
        reserved.update(keywords)

    seen_labels = set()
    for option in options:
        label = option.label.strip().lower()
        if label in seen_labels:
            return _fail("DUPLICATE_LABEL", f"Label '{option.label}' appears more than once")
        seen_labels.add(label)

        if option.target_menu == menu_key:
            return _fail("SELF_TARGET", f"Option '{option.label}' targets its own menu")

        shadowed = [t for t in [label, *(k.strip().lower() for k in option.keywords)] if t in reserved]
        if shadowed:
            return _fail(
                "RESERVED_KEYWORD",
                f"Option '{option.label}' uses '{shadowed[0]}', which is a global navigation command"
            )

    return _ok()


def validate_edge(edge: FlowEdge) -> ValidationResult:
    """Validate that an edge's condition value fits its condition type."""
    value = edge.condition_value or ""

    if edge.condition_type == ConditionType.ALWAYS:
        return _ok()

    if not value.strip():
        return _fail("EMPTY_CONDITION", f"Edge {edge.id} needs a condition value")

    if edge.condition_type == ConditionType.NUMBER:
        try:
            int(value.strip())
        except ValueError:
            return _fail("INVALID_NUMBER", f"Edge {edge.id} value '{value}' is not an integer")

    if edge.condition_type == ConditionType.REGEX:
        try:
            re.compile(value)
        except re.error as e:
            return _fail("INVALID_REGEX", f"Edge {edge.id} pattern is invalid: {e}")

    return _ok()
