# /botengine/workflows/parser.py

"""
Pure input parsing for the bot engine.

Turns raw inbound text into a structured token that every resolver consumes.
parse_input is deterministic, has no side effects and never fails: an empty
string yields all-false/empty fields.
"""

import re
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field

_NUMBER_RE = re.compile(r"\d+", re.ASCII)
_COMMAND_PREFIXES = ("/", "!")
# \w is Unicode-aware, so accented letters survive.
_NON_WORD_RE = re.compile(r"[^\w\s]")

MIN_KEYWORD_LENGTH = 3


class ParsedInput(BaseModel):
    """Structured view of one inbound message."""
    original: str = ""
    normalized: str = ""
    is_number: bool = False
    number: Optional[int] = None
    is_command: bool = False
    command: Optional[str] = None
    args: List[str] = Field(default_factory=list)
    keywords: List[str] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)


def parse_input(raw: Optional[str]) -> ParsedInput:
    """
    Parse raw message text.

    Args:
        raw: The message text as received from the transport

    Returns:
        ParsedInput with normalized text, numeric value, command parts and keywords
    """
    original = raw or ""
    normalized = original.strip().lower()

    is_number = bool(_NUMBER_RE.fullmatch(normalized))
    number = int(normalized) if is_number else None

    is_command = normalized.startswith(_COMMAND_PREFIXES)
    command: Optional[str] = None
    args: List[str] = []
    if is_command:
        parts = normalized[1:].split()
        if parts:
            command = parts[0]
            args = parts[1:]

    keywords = [
        word for word in _NON_WORD_RE.sub("", normalized).split()
        if len(word) >= MIN_KEYWORD_LENGTH
    ]

    return ParsedInput(
        original=original,
        normalized=normalized,
        is_number=is_number,
        number=number,
        is_command=is_command,
        command=command,
        args=args,
        keywords=keywords,
    )
