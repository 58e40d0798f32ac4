from __future__ import annotations

from typing import Dict, FrozenSet, List, Optional

from compliance.compliance_models import ComplianceEvaluation, PersonRecord
from compliance.compliance_policy import (
    ALL_TASKS_COMPLETED,
    EVALUATION_MODE_FLAGS,
    EVALUATION_MODE_ONBOARDING_STATUS,
    ONBOARDING_STATUS_NEEDS,
    need_catalog,
)


def parse_required_types(raw: Optional[str]) -> FrozenSet[str]:
    """Turn a comma-separated list of employee types into a lower-cased set."""
    if not raw:
        return frozenset()
    return frozenset(part.strip().lower() for part in raw.split(",") if part.strip())


def is_eligible(record: PersonRecord, required_types: FrozenSet[str]) -> bool:
    employee_type = (record.employee_type or "").strip().lower()
    return all(
        (
            record.active,
            record.invited,
            record.in_audit_scope,
            employee_type in required_types,
        )
    )


def _flag_needs(record: PersonRecord, catalog: Dict[str, str]) -> List[str]:
    needs: List[str] = []
    if not record.policies_accepted:
        needs.append(catalog["policy_acceptance"])
    if not record.security_training_completed:
        needs.append(catalog["security_training"])
        needs.append(catalog["training_proof"])
    return needs


def _onboarding_needs(record: PersonRecord, catalog: Dict[str, str]) -> List[str]:
    if (record.personnel_status or "").lower() == ALL_TASKS_COMPLETED:
        return []
    status = (record.onboarding_status or "").lower()
    return [catalog[key] for key in ONBOARDING_STATUS_NEEDS.get(status, ())]


def evaluate_record(
    record: PersonRecord,
    required_types: FrozenSet[str],
    mode: str = EVALUATION_MODE_FLAGS,
    catalog: Optional[Dict[str, str]] = None,
) -> ComplianceEvaluation:
    """
    Decide whether a person is in scope and what they still owe.

    Policy:
    - Eligible only when active, invited, in audit scope and of a required
      employee type (compared lower-cased).
    - "flags" mode: policy acceptance first, then security training followed
      by the proof-of-training upload.
    - "onboarding_status" mode: nothing is owed once the personnel status is
      all_tasks_completed; otherwise not_started owes all three needs,
      security_training owes the last two and anything else owes nothing.
    - An eligible person with no needs is compliant and is not notified.
    """
    if catalog is None:
        catalog = need_catalog()

    if mode == EVALUATION_MODE_FLAGS:
        needs = _flag_needs(record, catalog)
    elif mode == EVALUATION_MODE_ONBOARDING_STATUS:
        needs = _onboarding_needs(record, catalog)
    else:
        raise ValueError(f"Unknown evaluation mode: {mode}")

    return ComplianceEvaluation(eligible=is_eligible(record, required_types), needs=tuple(needs))
