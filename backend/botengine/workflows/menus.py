# /botengine/workflows/menus.py

"""
Dynamic menu rendering and selection.

Options are matched in order by (a) 1-based numeric position, (b) exact or
substring label match, (c) keyword containment. The first match wins. A
number outside the option range never matches anything.

Pure functions only: loading menus is the job of MenuService.
"""

from typing import List, Optional

from botengine.config import strings
from botengine.models.menu import DynamicMenu, MenuOption, MenuSelection, SelectionKind
from botengine.workflows.parser import ParsedInput


def render_menu(menu: DynamicMenu, invalid: bool = False) -> str:
    """
    Render a menu as WhatsApp text.

    Args:
        menu: The menu definition
        invalid: Prefix the output with the invalid-option notice

    Returns:
        Header (or title), numbered options, navigation hints and footer
    """
    lines: List[str] = []

    if invalid:
        lines.append(strings.INVALID_OPTION_NOTICE)
        lines.append("")

    lines.append(menu.header or menu.title or strings.MENU_DEFAULT_HEADER)
    lines.append("")

    for index, option in enumerate(menu.options):
        emoji = f"{option.emoji} " if option.emoji else ""
        lines.append(f"{index + 1} - {emoji}{option.label}")
        if option.description:
            lines.append(f"   └ {option.description}")

    lines.append("")
    lines.append(strings.MENU_SEPARATOR)
    if menu.parent_menu_key:
        lines.append(strings.MENU_BACK_HINT)
    lines.append(strings.MENU_HOME_HINT)

    if menu.footer:
        lines.append("")
        lines.append(menu.footer)

    return "\n".join(lines)


def _label_matches(option: MenuOption, normalized: str) -> bool:
    label = option.label.strip().lower()
    if not label:
        return False
    return normalized == label or normalized in label or label in normalized


def _keyword_matches(option: MenuOption, parsed: ParsedInput) -> bool:
    for keyword in option.keywords:
        kw = keyword.strip().lower()
        if not kw:
            continue
        if kw == parsed.normalized or kw in parsed.keywords or kw in parsed.normalized:
            return True
    return False


def selection_for_option(option: MenuOption, index: int) -> MenuSelection:
    if option.target_menu:
        return MenuSelection(kind=SelectionKind.SUBMENU, option_index=index, target_menu=option.target_menu)
    if option.target_state:
        return MenuSelection(kind=SelectionKind.STATE, option_index=index, target_state=option.target_state)
    if option.action:
        return MenuSelection(kind=SelectionKind.ACTION, option_index=index, action=option.action)
    if option.message:
        return MenuSelection(kind=SelectionKind.MESSAGE, option_index=index, message=option.message)
    return MenuSelection(kind=SelectionKind.LINK, option_index=index, url=option.url)


def find_option(menu: DynamicMenu, parsed: ParsedInput) -> Optional[int]:
    """Zero-based index of the selected option, or None."""
    if parsed.is_number:
        if parsed.number is not None and 1 <= parsed.number <= len(menu.options):
            return parsed.number - 1
        return None

    normalized = parsed.normalized
    if not normalized:
        return None

    for index, option in enumerate(menu.options):
        if _label_matches(option, normalized):
            return index

    for index, option in enumerate(menu.options):
        if _keyword_matches(option, parsed):
            return index

    return None


def resolve_selection(menu: DynamicMenu, parsed: ParsedInput) -> MenuSelection:
    """
    Resolve user input against a menu.

    Returns:
        MenuSelection describing the target; kind NONE when nothing matched,
        in which case the caller re-renders the menu and keeps the state.
    """
    index = find_option(menu, parsed)
    if index is None:
        return MenuSelection(kind=SelectionKind.NONE)
    return selection_for_option(menu.options[index], index)
