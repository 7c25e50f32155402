# /botengine/models/api.py

from pydantic import BaseModel, Field
from typing import List, Dict, Optional, Any
from datetime import datetime

from botengine.models.menu import MenuOption

# This file contains Pydantic models that define the structure of data for
# API requests and responses, ensuring type safety and validation.

class InterceptRequest(BaseModel):
    tenant_id: str = Field(..., min_length=1)
    sender_identifier: str = Field(..., min_length=1)
    message_text: str = ""
    transport_instance_name: Optional[str] = None

class InterceptResponse(BaseModel):
    intercepted: bool = False
    response: Optional[str] = None
    new_state: Optional[str] = None
    should_continue: bool = True
    error: Optional[str] = None

    @classmethod
    def pass_through(cls, error: Optional[str] = None) -> "InterceptResponse":
        return cls(intercepted=False, should_continue=True, error=error)

class APIResponse(BaseModel):
    success: bool
    message: str
    data: Optional[Dict[str, Any]] = None
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    version: str

class BotLogEntry(BaseModel):
    message: str
    from_user: bool
    created_at: Optional[datetime] = None

class MenuValidationRequest(BaseModel):
    menu_key: str
    title: str = ""
    parent_menu_key: Optional[str] = None
    options: List[MenuOption] = Field(default_factory=list)
