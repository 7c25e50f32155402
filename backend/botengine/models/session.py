# /botengine/models/session.py

from datetime import datetime, timezone
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field, ConfigDict

START_STATE = "START"
ENDED_STATE = "ENCERRADO"
AWAITING_HUMAN_STATE = "AGUARDANDO_HUMANO"

# States in which the engine never intercepts.
TERMINAL_STATES = frozenset({ENDED_STATE, AWAITING_HUMAN_STATE})


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class BotSession(BaseModel):
    """
    Persisted conversational state for one (tenant, end-user) pair.

    `previous_state` is maintained by the store whenever `state` changes;
    `stack` holds the states left behind, most recent last.
    """
    tenant_id: str = Field(..., description="Tenant (reseller) identifier")
    user_id: str = Field(..., description="End-user identifier (digits of the phone number)")
    state: str = Field(default=START_STATE, description="Current logical position")
    previous_state: Optional[str] = Field(default=START_STATE, description="State active before the current one")
    stack: List[str] = Field(default_factory=list, description="Navigation history, most recent last")
    locked: bool = Field(default=False, description="Whether a processing pass holds the session")
    context: Dict[str, Any] = Field(default_factory=dict, description="Flow-local variables")
    last_interaction: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    created_at: datetime = Field(default_factory=utc_now)

    model_config = ConfigDict(extra="ignore")

    @classmethod
    def fresh(cls, tenant_id: str, user_id: str, locked: bool = False) -> "BotSession":
        """A brand-new session at START with an empty stack."""
        now = utc_now()
        return cls(
            tenant_id=tenant_id,
            user_id=user_id,
            locked=locked,
            last_interaction=now,
            updated_at=now,
            created_at=now,
        )

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES
