# backend/tests/unit/test_parser.py
import pytest

from botengine.workflows.parser import parse_input


def test_normalizes_and_detects_number():
    parsed = parse_input("  42 ")
    assert parsed.normalized == "42"
    assert parsed.is_number is True
    assert parsed.number == 42
    assert parsed.is_command is False


@pytest.mark.parametrize("raw", ["4 2", "-1", "1.5", "²", "abc", ""])
def test_non_numbers(raw):
    parsed = parse_input(raw)
    assert parsed.is_number is False
    assert parsed.number is None


@pytest.mark.parametrize("raw, command, args", [
    ("/Renovar Plano Mensal", "renovar", ["plano", "mensal"]),
    ("!teste", "teste", []),
    ("/", None, []),
])
def test_commands(raw, command, args):
    parsed = parse_input(raw)
    assert parsed.is_command is True
    assert parsed.command == command
    assert parsed.args == args


def test_keywords_keep_accents_and_drop_short_words():
    parsed = parse_input("Quero ver as opções, por favor!")
    assert parsed.keywords == ["quero", "ver", "opções", "por", "favor"]
    assert "as" not in parsed.keywords


def test_empty_input_yields_empty_fields():
    parsed = parse_input("")
    assert parsed.original == ""
    assert parsed.normalized == ""
    assert parsed.keywords == []
    assert parsed.is_command is False
    assert parse_input(None).normalized == ""


def test_parse_is_deterministic():
    assert parse_input("Menu Principal 2") == parse_input("Menu Principal 2")


def test_original_text_is_preserved():
    assert parse_input("  Olá Mundo ").original == "  Olá Mundo "
