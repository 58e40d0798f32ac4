# reminder_config.py
"""
Configuration for the compliance reminder run.

Values come from the environment (``.env`` is loaded first) and are collected
into an explicit ``ReminderConfig`` that is passed to the batch processor,
the filter and the composer.
"""

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict

from compliance.compliance_policy import (
    DEFAULT_EMPLOYEE_TYPES,
    DEFAULT_POLICIES_URL,
    DEFAULT_TRAINING_UPLOAD_URL,
    DELIVERY_PACING_SECONDS,
    EVALUATION_MODE_FLAGS,
    EVALUATION_MODE_ONBOARDING_STATUS,
    EVALUATION_MODES,
    REMINDER_CYCLE_DAYS,
    REMINDER_SKIP_CYCLES,
    REMINDER_WINDOW_COUNT,
    REMINDER_WINDOW_DAYS,
)

SOURCE_GRAPHQL = "graphql"
SOURCE_REST = "rest"
VALID_SOURCES = {SOURCE_GRAPHQL, SOURCE_REST}

DEFAULT_TEMPLATE_PATH = str(Path(__file__).resolve().parent / "compliance" / "templates" / "message.j2")


class ReminderConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    source: str = SOURCE_GRAPHQL
    evaluation_mode: str = EVALUATION_MODE_FLAGS

    secureframe_token: Optional[str] = None
    company_id: Optional[str] = None
    company_user_id: Optional[str] = None
    access_key: Optional[str] = None
    secret_key: Optional[str] = None

    employee_types: str = DEFAULT_EMPLOYEE_TYPES
    robot_name: str = "ComplyBot3000"
    company_name: Optional[str] = None
    security_training_url: str = "https://securityawareness.usalearning.gov/cybersecurity/index.htm"
    policies_url: str = DEFAULT_POLICIES_URL
    training_upload_url: str = DEFAULT_TRAINING_UPLOAD_URL
    help_channel: str = "#security-and-compliance"

    dry_run: bool = False
    test_message_target: Optional[str] = None

    slack_token: Optional[str] = None
    report_channel: Optional[str] = None

    window_gating: bool = False
    window_cycle_days: int = REMINDER_CYCLE_DAYS
    window_length_days: int = REMINDER_WINDOW_DAYS
    window_skip_cycles: int = REMINDER_SKIP_CYCLES
    window_count: int = REMINDER_WINDOW_COUNT

    pacing_seconds: float = DELIVERY_PACING_SECONDS
    http_timeout: float = 30.0
    template_path: str = DEFAULT_TEMPLATE_PATH


def _env_flag(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_str(name: str) -> Optional[str]:
    raw = os.getenv(name)
    if raw is None:
        return None
    raw = raw.strip()
    return raw or None


def _env_number(name: str, default, cast):
    raw = _env_str(name)
    if raw is None:
        return default
    try:
        return cast(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc


def load_reminder_config(**overrides) -> ReminderConfig:
    """Build the run configuration from the environment.

    Keyword overrides (e.g. from the CLI) win over environment values when
    they are not ``None``.
    """
    load_dotenv()

    source = (_env_str("SECUREFRAME_SOURCE") or SOURCE_GRAPHQL).lower()
    if source not in VALID_SOURCES:
        raise ValueError(f"SECUREFRAME_SOURCE must be one of {VALID_SOURCES}, got {source}")

    default_mode = (
        EVALUATION_MODE_FLAGS if source == SOURCE_GRAPHQL else EVALUATION_MODE_ONBOARDING_STATUS
    )
    mode = (_env_str("COMPLIANCE_EVALUATION_MODE") or default_mode).lower()
    if mode not in EVALUATION_MODES:
        raise ValueError(f"COMPLIANCE_EVALUATION_MODE must be one of {EVALUATION_MODES}, got {mode}")

    values = {
        "source": source,
        "evaluation_mode": mode,
        "secureframe_token": _env_str("SECUREFRAME_TOKEN"),
        "company_id": _env_str("SECUREFRAME_COMPANY_ID"),
        "company_user_id": _env_str("SECUREFRAME_COMPANY_USER_ID"),
        "access_key": _env_str("SECUREFRAME_ACCESS_KEY"),
        "secret_key": _env_str("SECUREFRAME_SECRET_KEY"),
        "employee_types": _env_str("EMPLOYEE_TYPES") or DEFAULT_EMPLOYEE_TYPES,
        "robot_name": _env_str("ROBOT_NAME") or "ComplyBot3000",
        "company_name": _env_str("COMPANY_NAME"),
        "security_training_url": _env_str("SECURITY_TRAINING_URL")
        or ReminderConfig.model_fields["security_training_url"].default,
        "policies_url": _env_str("SECUREFRAME_POLICIES_URL") or DEFAULT_POLICIES_URL,
        "training_upload_url": _env_str("SECUREFRAME_TRAINING_URL") or DEFAULT_TRAINING_UPLOAD_URL,
        "help_channel": _env_str("HELP_CHANNEL") or "#security-and-compliance",
        "dry_run": _env_flag("DRY_RUN"),
        "test_message_target": _env_str("TEST_MESSAGE_TARGET"),
        "slack_token": _env_str("SLACK_TOKEN"),
        "report_channel": _env_str("SLACK_REPORT_CHANNEL_ID"),
        "window_gating": _env_flag("REMINDER_WINDOW_GATING"),
        "window_cycle_days": _env_number("REMINDER_CYCLE_DAYS", REMINDER_CYCLE_DAYS, int),
        "window_length_days": _env_number("REMINDER_WINDOW_DAYS", REMINDER_WINDOW_DAYS, int),
        "window_skip_cycles": _env_number("REMINDER_SKIP_CYCLES", REMINDER_SKIP_CYCLES, int),
        "window_count": _env_number("REMINDER_WINDOW_COUNT", REMINDER_WINDOW_COUNT, int),
        "pacing_seconds": _env_number("DELIVERY_PACING_SECONDS", DELIVERY_PACING_SECONDS, float),
        "http_timeout": _env_number("SECUREFRAME_HTTP_TIMEOUT", 30.0, float),
        "template_path": _env_str("MESSAGE_TEMPLATE_PATH") or DEFAULT_TEMPLATE_PATH,
    }
    values.update({key: value for key, value in overrides.items() if value is not None})

    if values["window_cycle_days"] <= 0 or values["window_length_days"] <= 0:
        raise ValueError("Reminder cycle and window length must be positive")
    if values["window_count"] <= 0 or values["window_skip_cycles"] < 0:
        raise ValueError("Reminder window count must be positive and skip cycles non-negative")

    return ReminderConfig(**values)
