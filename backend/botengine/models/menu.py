# /botengine/models/menu.py

from enum import Enum
from typing import Optional, List
from pydantic import BaseModel, Field, ConfigDict, model_validator


class BotAction(str, Enum):
    """Navigation actions the engine knows how to execute without tenant data."""
    BACK_TO_PREVIOUS = "back_to_previous"
    BACK_TO_START = "back_to_start"
    OPEN_MENU = "open_menu"
    END_SESSION = "end_session"
    REQUEST_HUMAN = "request_human"


class MenuOption(BaseModel):
    """
    A selectable entry of a dynamic menu.

    Exactly one of target_menu, target_state, action, message or url must be set.
    """
    label: str = Field(..., min_length=1, description="Display and match text")
    keywords: List[str] = Field(default_factory=list, description="Alternate match terms")
    emoji: Optional[str] = None
    description: Optional[str] = None
    target_menu: Optional[str] = Field(default=None, description="menu_key to navigate to")
    target_state: Optional[str] = Field(default=None, description="Flow-graph state to jump into")
    action: Optional[BotAction] = Field(default=None, description="Terminal navigation action")
    message: Optional[str] = Field(default=None, description="Fixed reply; state does not change")
    url: Optional[str] = Field(default=None, description="Link reply; state does not change")

    model_config = ConfigDict(use_enum_values=False)

    @model_validator(mode="after")
    def exactly_one_target(self):
        targets = [self.target_menu, self.target_state, self.action, self.message, self.url]
        if sum(1 for t in targets if t) != 1:
            raise ValueError(f"Option '{self.label}' must define exactly one target")
        return self


class DynamicMenu(BaseModel):
    """Tenant-scoped menu, stored flat and linked to its parent by key."""
    tenant_id: str
    menu_key: str = Field(..., min_length=1)
    title: str
    header: Optional[str] = None
    footer: Optional[str] = None
    options: List[MenuOption] = Field(default_factory=list)
    parent_menu_key: Optional[str] = None
    is_root: bool = False
    is_active: bool = True

    model_config = ConfigDict(extra="ignore")


class SelectionKind(str, Enum):
    SUBMENU = "submenu"
    STATE = "state"
    ACTION = "action"
    MESSAGE = "message"
    LINK = "link"
    NONE = "none"


class MenuSelection(BaseModel):
    """Outcome of matching user input against a menu's options."""
    kind: SelectionKind
    option_index: Optional[int] = None
    target_menu: Optional[str] = None
    target_state: Optional[str] = None
    action: Optional[BotAction] = None
    message: Optional[str] = None
    url: Optional[str] = None

    @property
    def matched(self) -> bool:
        return self.kind != SelectionKind.NONE
