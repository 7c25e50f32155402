# /botengine/workflows/commands.py

"""
Universal navigation commands.

These work in any state and for any tenant configuration, so an end user is
never trapped inside a misconfigured menu. Matching is by exact equality
against the normalized input, never by substring.

All functions are pure: no database access, no logging.
"""

from typing import Iterable, List, Optional, Tuple, TypedDict

from botengine.models.menu import BotAction
from botengine.models.session import START_STATE, ENDED_STATE, AWAITING_HUMAN_STATE
from botengine.workflows.parser import ParsedInput

# Ordered: the first entry containing the input wins.
GLOBAL_COMMANDS: Tuple[Tuple[frozenset, BotAction], ...] = (
    (frozenset({"0", "voltar", "anterior", "retornar", "*"}), BotAction.BACK_TO_PREVIOUS),
    (frozenset({"#", "inicio", "início", "começo", "reiniciar", "start", "00", "##"}), BotAction.BACK_TO_START),
    (frozenset({"menu", "cardapio", "opcoes", "opções"}), BotAction.OPEN_MENU),
    (frozenset({"sair", "exit", "encerrar", "tchau", "bye", "fim"}), BotAction.END_SESSION),
    (frozenset({"humano", "atendente", "pessoa", "suporte", "falar com alguem"}), BotAction.REQUEST_HUMAN),
)

DEFAULT_MAIN_MENU_KEY = "MENU"

# Ways back out of any state; a tenant cannot switch these off.
ALWAYS_ENABLED = frozenset({BotAction.BACK_TO_PREVIOUS, BotAction.BACK_TO_START})


class NavigationResult(TypedDict):
    """State/stack produced by a navigation action."""
    new_state: str
    stack: List[str]


def match_global(parsed: ParsedInput, disabled: Iterable[BotAction] = ()) -> Optional[BotAction]:
    """
    Map parsed input to a universal navigation action.

    Args:
        parsed: Output of parse_input
        disabled: Actions the tenant has switched off; they never match,
            except the ALWAYS_ENABLED ones

    Returns:
        The matching BotAction, or None when the caller should try menu/flow resolution
    """
    disabled = set(disabled) - ALWAYS_ENABLED
    for keywords, action in GLOBAL_COMMANDS:
        if parsed.normalized in keywords:
            if action in disabled:
                return None
            return action
    return None


def apply_global_action(
    action: BotAction,
    current_state: str,
    stack: List[str],
    main_menu_key: str = DEFAULT_MAIN_MENU_KEY,
) -> NavigationResult:
    """
    Compute the fixed transition for a navigation action.

    Back pops the navigation stack, skipping entries equal to the current
    state; once the stack is exhausted it lands on START and stays there.
    The input stack is never mutated.
    """
    new_stack = list(stack)

    if action == BotAction.BACK_TO_PREVIOUS:
        target = START_STATE
        while new_stack:
            candidate = new_stack.pop()
            if candidate != current_state:
                target = candidate
                break
        return {"new_state": target, "stack": new_stack}

    if action == BotAction.BACK_TO_START:
        return {"new_state": START_STATE, "stack": []}

    if action == BotAction.OPEN_MENU:
        return {"new_state": main_menu_key or DEFAULT_MAIN_MENU_KEY, "stack": []}

    if action == BotAction.END_SESSION:
        return {"new_state": ENDED_STATE, "stack": []}

    if action == BotAction.REQUEST_HUMAN:
        return {"new_state": AWAITING_HUMAN_STATE, "stack": new_stack}

    raise ValueError(f"Unhandled navigation action: {action}")
