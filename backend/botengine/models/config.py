# /botengine/models/config.py

from datetime import datetime, time
from typing import List, Optional, Dict
from zoneinfo import ZoneInfo
from pydantic import BaseModel, Field, ConfigDict, field_validator

from botengine.models.menu import BotAction


class BotEngineConfig(BaseModel):
    """
    Per-tenant bot engine configuration.

    Fetched once per invocation and passed explicitly to the resolvers.
    """
    tenant_id: str = Field(..., description="Tenant identifier")
    is_enabled: bool = Field(default=False, description="Whether the engine intercepts messages")
    main_menu_key: str = Field(default="MENU", description="Destination of the open-menu command")
    human_takeover_message: Optional[str] = None
    session_end_message: Optional[str] = None
    disabled_commands: List[BotAction] = Field(default_factory=list, description="Global actions switched off")
    custom_variables: Dict[str, str] = Field(default_factory=dict, description="Values for {var} placeholders")

    business_hours_enabled: bool = False
    business_hours_start: str = "08:00"
    business_hours_end: str = "22:00"
    business_days: List[int] = Field(default_factory=lambda: [1, 2, 3, 4, 5, 6], description="ISO weekdays, 1=Monday")
    timezone: str = "America/Sao_Paulo"

    model_config = ConfigDict(extra="ignore")

    @field_validator("disabled_commands", mode="before")
    @classmethod
    def drop_unknown_commands(cls, v):
        if not v:
            return []
        known = {a.value for a in BotAction}
        return [c for c in v if (c.value if isinstance(c, BotAction) else c) in known]

    def is_within_business_hours(self, now: Optional[datetime] = None) -> bool:
        """Windows where end < start wrap past midnight."""
        if not self.business_hours_enabled:
            return True

        local_now = (now or datetime.now(ZoneInfo("UTC"))).astimezone(ZoneInfo(self.timezone))
        if local_now.isoweekday() not in self.business_days:
            return False

        start = time.fromisoformat(self.business_hours_start)
        end = time.fromisoformat(self.business_hours_end)
        current = local_now.time().replace(second=0, microsecond=0)

        if end < start:
            return current >= start or current <= end
        return start <= current <= end
