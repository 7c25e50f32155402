# /botengine/models/flow.py

from enum import Enum
from typing import Optional, Dict, Any
from pydantic import BaseModel, Field, ConfigDict


class ConditionType(str, Enum):
    ALWAYS = "always"
    EQUALS = "equals"
    NUMBER = "number"
    CONTAINS = "contains"
    REGEX = "regex"
    VARIABLE = "variable"


class BotFlow(BaseModel):
    """
    A tenant-authored node/edge graph.

    This is a PURE DATA model; resolution lives in botengine.workflows.flows.
    """
    id: str = Field(..., description="Flow identifier")
    tenant_id: str
    name: str = ""
    is_active: bool = True
    priority: int = Field(default=0, description="Higher priority flows are preferred")

    model_config = ConfigDict(extra="ignore")


class FlowNode(BaseModel):
    id: str
    flow_id: str
    node_type: str = Field(default="message", description="start, message, menu, input, end, ...")
    is_entry_point: bool = False
    config: Dict[str, Any] = Field(default_factory=dict, description="Holds state_name/menu_key and message_text")

    model_config = ConfigDict(extra="ignore")

    @property
    def state_name(self) -> Optional[str]:
        return self.config.get("state_name") or self.config.get("menu_key")

    @property
    def message(self) -> Optional[str]:
        return self.config.get("message_text") or self.config.get("message")


class FlowEdge(BaseModel):
    id: str
    flow_id: str
    source_node_id: str
    target_node_id: str
    condition_type: ConditionType = ConditionType.ALWAYS
    condition_value: Optional[str] = None
    priority: int = 0

    model_config = ConfigDict(extra="ignore")


class FlowTransition(BaseModel):
    """Result of a successful flow-graph resolution."""
    new_state: str
    message: Optional[str] = None
    push_to_stack: bool = True
    node_id: Optional[str] = None
