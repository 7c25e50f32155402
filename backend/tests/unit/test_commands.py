# backend/tests/unit/test_commands.py
import pytest

from botengine.models.menu import BotAction
from botengine.workflows.commands import apply_global_action, match_global
from botengine.workflows.parser import parse_input


@pytest.mark.parametrize("text, action", [
    ("0", BotAction.BACK_TO_PREVIOUS),
    ("Voltar", BotAction.BACK_TO_PREVIOUS),
    ("*", BotAction.BACK_TO_PREVIOUS),
    ("#", BotAction.BACK_TO_START),
    ("00", BotAction.BACK_TO_START),
    ("início", BotAction.BACK_TO_START),
    ("MENU", BotAction.OPEN_MENU),
    ("opções", BotAction.OPEN_MENU),
    ("tchau", BotAction.END_SESSION),
    ("falar com alguem", BotAction.REQUEST_HUMAN),
    ("  atendente ", BotAction.REQUEST_HUMAN),
])
def test_match_global(text, action):
    assert match_global(parse_input(text)) == action


@pytest.mark.parametrize("text", ["voltar ao menu", "menu 2", "1", "oi", "", "/menu"])
def test_match_global_requires_exact_equality(text):
    assert match_global(parse_input(text)) is None


def test_disabled_command_does_not_match():
    assert match_global(parse_input("sair"), disabled=[BotAction.END_SESSION]) is None
    assert match_global(parse_input("#"), disabled=[BotAction.END_SESSION]) == BotAction.BACK_TO_START


def test_back_and_start_cannot_be_disabled():
    disabled = [BotAction.BACK_TO_START, BotAction.BACK_TO_PREVIOUS]
    assert match_global(parse_input("#"), disabled=disabled) == BotAction.BACK_TO_START
    assert match_global(parse_input("0"), disabled=disabled) == BotAction.BACK_TO_PREVIOUS


def test_back_pops_stack():
    result = apply_global_action(BotAction.BACK_TO_PREVIOUS, "SUB", ["START", "PLANOS"])
    assert result == {"new_state": "PLANOS", "stack": ["START"]}


def test_back_skips_entries_equal_to_current_state():
    result = apply_global_action(BotAction.BACK_TO_PREVIOUS, "PLANOS", ["START", "PLANOS"])
    assert result == {"new_state": "START", "stack": []}


def test_back_with_empty_stack_goes_to_start():
    result = apply_global_action(BotAction.BACK_TO_PREVIOUS, "SUB", [])
    assert result == {"new_state": "START", "stack": []}


def test_back_at_start_stays_at_start():
    result = apply_global_action(BotAction.BACK_TO_PREVIOUS, "START", [])
    assert result == {"new_state": "START", "stack": []}


def test_back_to_start_and_end_clear_stack():
    stack = ["START", "A", "B"]
    assert apply_global_action(BotAction.BACK_TO_START, "C", stack) == {"new_state": "START", "stack": []}
    assert apply_global_action(BotAction.END_SESSION, "C", stack) == {"new_state": "ENCERRADO", "stack": []}
    assert stack == ["START", "A", "B"]


def test_open_menu_uses_main_menu_key():
    result = apply_global_action(BotAction.OPEN_MENU, "C", ["A"], main_menu_key="PRINCIPAL")
    assert result == {"new_state": "PRINCIPAL", "stack": []}


def test_request_human_keeps_stack():
    result = apply_global_action(BotAction.REQUEST_HUMAN, "C", ["A", "B"])
    assert result == {"new_state": "AGUARDANDO_HUMANO", "stack": ["A", "B"]}
