# secureframe_models.py
"""
Pydantic views of the Secureframe GraphQL and REST payloads.

Only the fields the reminder run reads are declared; everything else in the
vendor response is ignored.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from compliance.compliance_models import PersonRecord


class SecureframePerson(BaseModel):
    """A ``CompanyUser`` from the personnelTabContentsSearch GraphQL query."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    email: str = ""
    name: str = ""
    active: bool = False
    invited: bool = False
    in_audit_scope: bool = Field(False, alias="inAuditScope")
    employee_type: Optional[str] = Field(None, alias="employeeType")
    invited_at: Optional[datetime] = Field(None, alias="invitedAt")
    policies_accepted: bool = Field(False, alias="policiesAccepted")
    security_training_completed: bool = Field(False, alias="securityTrainingCompleted")
    start_date: Optional[str] = Field(None, alias="startDate")
    role: Optional[str] = None

    def to_record(self) -> PersonRecord:
        return PersonRecord(
            id=self.id,
            email=self.email,
            name=self.name,
            active=self.active,
            invited=self.invited,
            in_audit_scope=self.in_audit_scope,
            policies_accepted=self.policies_accepted,
            security_training_completed=self.security_training_completed,
            employee_type=self.employee_type or "",
            invited_at=self.invited_at,
        )


class SearchMetadata(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    current_page: int = Field(1, alias="currentPage")
    limit_value: int = Field(0, alias="limitValue")
    total_count: int = Field(0, alias="totalCount")
    total_pages: int = Field(1, alias="totalPages")


class PersonnelPage(BaseModel):
    collection: List[SecureframePerson] = Field(default_factory=list)
    metadata: SearchMetadata = Field(default_factory=SearchMetadata)


class SecureframeCompany(BaseModel):
    id: str
    name: str = ""
    logo: Optional[str] = None


class SecureframeUserAttributes(BaseModel):
    """``data[].attributes`` from the REST ``/users`` endpoint."""

    id: str
    email: str = ""
    name: str = ""
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    active: bool = False
    invited: bool = False
    in_audit_scope: bool = False
    employee_type: Optional[str] = None
    invited_at: Optional[datetime] = None
    onboarding_status: Optional[str] = None
    personnel_status: Optional[str] = None
    role: Optional[str] = None

    def to_record(self) -> PersonRecord:
        name = self.name or " ".join(part for part in (self.first_name, self.last_name) if part)
        return PersonRecord(
            id=self.id,
            email=self.email,
            name=name,
            active=self.active,
            invited=self.invited,
            in_audit_scope=self.in_audit_scope,
            employee_type=self.employee_type or "",
            onboarding_status=self.onboarding_status,
            personnel_status=self.personnel_status,
            invited_at=self.invited_at,
        )

    def to_status_map(self) -> dict:
        return {
            "name": self.name,
            "email": self.email,
            "employee_type": self.employee_type or "",
            "onboarding_status": self.onboarding_status or "",
            "personnel_status": self.personnel_status or "",
        }


class SecureframeUser(BaseModel):
    id: str
    type: Optional[str] = None
    attributes: SecureframeUserAttributes


class SecureframeUserList(BaseModel):
    data: List[SecureframeUser] = Field(default_factory=list)
