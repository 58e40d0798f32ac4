"""Centralized policy definitions for compliance reminders.

The need catalog, onboarding-status rules and reminder-window constants live
here so the filter, the window calculator, configuration and tests all share
one set of values.
"""

from __future__ import annotations

from typing import Dict, Tuple

EVALUATION_MODE_FLAGS = "flags"
"""Evaluate per-person policy/training flags (GraphQL personnel records)."""

EVALUATION_MODE_ONBOARDING_STATUS = "onboarding_status"
"""Evaluate the aggregate onboarding status (REST user records)."""

EVALUATION_MODES = {EVALUATION_MODE_FLAGS, EVALUATION_MODE_ONBOARDING_STATUS}

DEFAULT_POLICIES_URL = "https://app.secureframe.com/onboard/employee/policies"
DEFAULT_TRAINING_UPLOAD_URL = "https://app.secureframe.com/onboard/employee/training"

POLICY_ACCEPTANCE_NEED = "Accept or re-accept our company policies at {policies_url}"
SECURITY_TRAINING_NEED = "Take the Cybersecurity Awareness Training at {{ SecurityTrainingURL }}"
TRAINING_PROOF_NEED = (
    "Upload proof of training completion to {training_upload_url} (PDF or screenshot)"
)

ALL_TASKS_COMPLETED = "all_tasks_completed"
"""Aggregate personnel status meaning nothing is outstanding."""

ONBOARDING_NOT_STARTED = "not_started"
ONBOARDING_SECURITY_TRAINING = "security_training"

DEFAULT_EMPLOYEE_TYPES = "employee,contractor"

REMINDER_CYCLE_DAYS = 354
"""Days between consecutive reminder windows."""

REMINDER_WINDOW_DAYS = 10
"""Length of each reminder window."""

REMINDER_SKIP_CYCLES = 2
"""Cycles between the anchor and the first window; the first anniversary is skipped."""

REMINDER_WINDOW_COUNT = 5
"""Number of windows generated ahead of the anchor."""

DELIVERY_PACING_SECONDS = 0.25
"""Delay between deliveries to respect chat platform rate limits."""


def need_catalog(
    *,
    policies_url: str = DEFAULT_POLICIES_URL,
    training_upload_url: str = DEFAULT_TRAINING_UPLOAD_URL,
) -> Dict[str, str]:
    """Return the need fragments keyed by name.

    The security-training fragment stays a template so the URL is resolved at
    render time against the recipient's message context.
    """
    return {
        "policy_acceptance": POLICY_ACCEPTANCE_NEED.format(policies_url=policies_url),
        "security_training": SECURITY_TRAINING_NEED,
        "training_proof": TRAINING_PROOF_NEED.format(training_upload_url=training_upload_url),
    }


ONBOARDING_STATUS_NEEDS: Dict[str, Tuple[str, ...]] = {
    ONBOARDING_NOT_STARTED: ("policy_acceptance", "security_training", "training_proof"),
    ONBOARDING_SECURITY_TRAINING: ("security_training", "training_proof"),
}
"""Actionable onboarding statuses and the needs they map to, in order."""
