# compliance_models.py

from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class PersonRecord(BaseModel):
    """Normalized personnel snapshot, whichever Secureframe endpoint produced it."""

    model_config = ConfigDict(frozen=True)

    id: str
    email: str
    name: str = ""
    active: bool = False
    invited: bool = False
    in_audit_scope: bool = False
    policies_accepted: Optional[bool] = None
    security_training_completed: Optional[bool] = None
    employee_type: str = ""
    personnel_status: Optional[str] = None
    onboarding_status: Optional[str] = None
    invited_at: Optional[datetime] = None

    @property
    def first_name(self) -> str:
        parts = (self.name or "").split()
        return parts[0] if parts else ""


class ComplianceEvaluation(BaseModel):
    model_config = ConfigDict(frozen=True)

    eligible: bool
    needs: Tuple[str, ...] = ()

    @property
    def should_notify(self) -> bool:
        return self.eligible and bool(self.needs)


class ReminderWindow(BaseModel):
    model_config = ConfigDict(frozen=True)

    index: int
    start: datetime
    end: datetime


class MessageContext(BaseModel):
    """Render-time view of one recipient's reminder."""

    model_config = ConfigDict(frozen=True)

    email: str = ""
    bot_name: str = ""
    greetings: str = ""
    first_name: str = ""
    company: str = ""
    security_training_url: str = ""
    needs: Tuple[str, ...] = ()
    interpreted_needs: Tuple[str, ...] = ()
    help_channel: str = ""

    def template_fields(self) -> Dict[str, Any]:
        return {
            "Email": self.email,
            "BotName": self.bot_name,
            "Greetings": self.greetings,
            "FirstName": self.first_name,
            "Company": self.company,
            "SecurityTrainingURL": self.security_training_url,
            "Needs": list(self.needs),
            "InterpretedNeeds": list(self.interpreted_needs),
            "HelpChannel": self.help_channel,
        }


class RecipientHandle(BaseModel):
    model_config = ConfigDict(frozen=True)

    email: str
    user_id: Optional[str] = None
    first_name: Optional[str] = None


class ReminderBatchError(BaseModel):
    email: Optional[str] = None
    person_id: Optional[str] = None
    error_code: str
    error_message: str


class ReminderRecipientResult(BaseModel):
    email: str
    person_id: str
    needs: List[str] = Field(default_factory=list)
    delivered: bool = False
    dry_run: bool = False
    window_index: Optional[int] = None


class ReminderRunSummary(BaseModel):
    total_seen: int = 0
    in_scope: int = 0
    noncompliant: int = 0
    outside_window: int = 0
    missing_anchor: int = 0
    notified: int = 0
    dry_run: int = 0
    errors: List[ReminderBatchError] = Field(default_factory=list)
    recipients: List[ReminderRecipientResult] = Field(default_factory=list)

    def to_logging_dict(self) -> dict:
        return self.model_dump()

    @property
    def error_count(self) -> int:
        return len(self.errors)
