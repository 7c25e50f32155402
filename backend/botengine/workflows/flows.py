# /botengine/workflows/flows.py

"""
Pure flow-graph evaluation.

A flow is a set of nodes joined by conditional edges. For a given source node
the edges are evaluated in descending priority; the first edge whose
condition holds for the parsed input decides the transition. If none holds,
the state does not advance.

Malformed conditions (bad regex, non-numeric "number" values) are treated as
non-matching and never raise.
"""

import re
from typing import Any, Dict, Iterable, List, Optional

from botengine.models.flow import ConditionType, FlowEdge, FlowNode
from botengine.models.session import START_STATE
from botengine.workflows.parser import ParsedInput

_DOUBLE_BRACE_RE = re.compile(r"\{\{(\w+)\}\}")
_SINGLE_BRACE_RE = re.compile(r"\{(\w+)\}")


def evaluate_condition(
    edge: FlowEdge,
    parsed: ParsedInput,
    context: Optional[Dict[str, Any]] = None,
) -> bool:
    """Check a single edge condition against the parsed input."""
    value = (edge.condition_value or "").strip()
    condition = edge.condition_type

    if condition == ConditionType.ALWAYS:
        return True

    if condition == ConditionType.EQUALS:
        return parsed.normalized == value.lower()

    if condition == ConditionType.NUMBER:
        if not parsed.is_number:
            return False
        try:
            return parsed.number == int(value)
        except ValueError:
            return False

    if condition == ConditionType.CONTAINS:
        return bool(value) and value.lower() in parsed.normalized

    if condition == ConditionType.REGEX:
        try:
            return re.search(value, parsed.original, re.IGNORECASE) is not None
        except re.error:
            return False

    if condition == ConditionType.VARIABLE:
        # "name" checks presence, "name:value" checks equality (case-insensitive)
        if not value:
            return False
        name, _, expected = value.partition(":")
        actual = (context or {}).get(name)
        if not expected:
            return actual is not None
        return actual is not None and str(actual).lower() == expected.lower()

    return False


def select_edge(
    edges: Iterable[FlowEdge],
    parsed: ParsedInput,
    context: Optional[Dict[str, Any]] = None,
) -> Optional[FlowEdge]:
    """First satisfied edge in descending priority order (stable for ties)."""
    ordered = sorted(edges, key=lambda e: e.priority, reverse=True)
    for edge in ordered:
        if evaluate_condition(edge, parsed, context):
            return edge
    return None


def find_entry_node(nodes: List[FlowNode]) -> Optional[FlowNode]:
    for node in nodes:
        if node.is_entry_point:
            return node
    for node in nodes:
        if node.node_type == "start":
            return node
    return nodes[0] if nodes else None


def find_node_for_state(nodes: List[FlowNode], state: str) -> Optional[FlowNode]:
    """
    Node whose embedded state_name/menu_key equals state; START maps to the
    entry node. Nodes without a state name are addressed by their id.
    """
    if state == START_STATE:
        for node in nodes:
            if node.state_name == START_STATE:
                return node
        return find_entry_node(nodes)
    for node in nodes:
        if node.state_name == state:
            return node
    for node in nodes:
        if not node.state_name and node.id == state:
            return node
    return None


def node_state_name(node: FlowNode) -> str:
    return node.state_name or node.id


def interpolate(text: Optional[str], variables: Dict[str, Any]) -> Optional[str]:
    """Replace {{var}} and {var} placeholders; unknown names are left untouched."""
    if not text or not variables:
        return text

    def _sub(match: "re.Match") -> str:
        value = variables.get(match.group(1))
        return match.group(0) if value is None else str(value)

    return _SINGLE_BRACE_RE.sub(_sub, _DOUBLE_BRACE_RE.sub(_sub, text))
