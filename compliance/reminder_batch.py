import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Callable, FrozenSet, Optional, Sequence

from compliance.compliance_filter import evaluate_record, parse_required_types
from compliance.compliance_models import (
    MessageContext,
    PersonRecord,
    ReminderBatchError,
    ReminderRecipientResult,
    ReminderRunSummary,
    ReminderWindow,
)
from compliance.compliance_policy import need_catalog
from compliance.message_composer import MessageComposer
from compliance.reminder_window import build_windows, find_active_window
from compliance_errors import MissingAnchorError, ReminderError
from reminder_config import ReminderConfig
from secureframe.personnel_source import PersonnelSource
from slack_service import NotificationSink

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler()
    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ReminderBatchProcessor:
    """One pass over the roster: filter, gate on reminder windows, compose, deliver."""

    def __init__(
        self,
        config: ReminderConfig,
        *,
        source: PersonnelSource,
        sink: NotificationSink,
        composer: Optional[MessageComposer] = None,
        company_name: Optional[str] = None,
        clock: Callable[[], datetime] = _utcnow,
        sleep: Callable[[float], None] = time.sleep,
        correlation_id: Optional[str] = None,
    ) -> None:
        self.config = config
        self.source = source
        self.sink = sink
        self.composer = composer or MessageComposer(template_path=config.template_path)
        self.company_name = company_name or config.company_name or ""
        self.clock = clock
        self.sleep = sleep
        self.correlation_id = correlation_id or str(uuid.uuid4())

        self.required_types: FrozenSet[str] = parse_required_types(config.employee_types)
        self.catalog = need_catalog(
            policies_url=config.policies_url,
            training_upload_url=config.training_upload_url,
        )
        self.summary = ReminderRunSummary()

    # -------------------------------------------------------
    # MAIN PIPELINE
    # -------------------------------------------------------
    def run(self) -> ReminderRunSummary:
        self.summary = ReminderRunSummary()
        logger.info(
            "reminder_run_started",
            extra={
                "correlation_id": self.correlation_id,
                "dry_run": self.config.dry_run,
                "window_gating": self.config.window_gating,
                "evaluation_mode": self.config.evaluation_mode,
            },
        )

        # A vendor failure aborts the whole run.
        roster = self.source.fetch_roster()
        now = self.clock()
        attempted = False

        for record in roster:
            self.summary.total_seen += 1

            needs, window = self._select(record, now)
            if needs is None:
                continue

            if attempted:
                self.sleep(self.config.pacing_seconds)
            attempted = True

            self._notify(record, needs, window)

            if self.config.test_message_target:
                logger.info(
                    "reminder_test_message_sent",
                    extra={
                        "correlation_id": self.correlation_id,
                        "target": self.config.test_message_target,
                    },
                )
                break

        logger.info(
            "reminder_run_complete",
            extra={"correlation_id": self.correlation_id, **self.summary.to_logging_dict()},
        )
        return self.summary

    # -------------------------------------------------------
    # SELECTION
    # -------------------------------------------------------
    def _select(self, record: PersonRecord, now: datetime):
        """Return (needs, window) for a person to notify, or (None, None) to skip."""
        evaluation = evaluate_record(
            record,
            self.required_types,
            self.config.evaluation_mode,
            catalog=self.catalog,
        )
        if not evaluation.eligible:
            return None, None
        self.summary.in_scope += 1

        if not evaluation.should_notify:
            return None, None
        self.summary.noncompliant += 1
        logger.info(
            "person_noncompliant",
            extra={"email": record.email, "needs": list(evaluation.needs)},
        )

        if not self.config.window_gating:
            return evaluation.needs, None

        try:
            windows = build_windows(
                record.invited_at,
                self.config.window_count,
                cycle_days=self.config.window_cycle_days,
                window_days=self.config.window_length_days,
                skip_cycles=self.config.window_skip_cycles,
            )
        except MissingAnchorError:
            self.summary.missing_anchor += 1
            logger.warning(
                "reminder_anchor_missing",
                extra={"email": record.email, "person_id": record.id},
            )
            return None, None

        window = find_active_window(now, windows)
        if window is None:
            self.summary.outside_window += 1
            logger.info(
                "reminder_outside_window",
                extra={"email": record.email, "first_window_start": windows[0].start.isoformat()},
            )
            return None, None
        return evaluation.needs, window

    # -------------------------------------------------------
    # DELIVERY
    # -------------------------------------------------------
    def _notify(
        self,
        record: PersonRecord,
        needs: Sequence[str],
        window: Optional[ReminderWindow],
    ) -> None:
        email = self.config.test_message_target or record.email
        result = ReminderRecipientResult(
            email=email,
            person_id=record.id,
            needs=list(needs),
            window_index=window.index if window else None,
        )

        try:
            recipient = self.sink.resolve_recipient(email)
            context = MessageContext(
                email=email,
                bot_name=self.config.robot_name,
                first_name=recipient.first_name or record.first_name,
                company=self.company_name,
                security_training_url=self.config.security_training_url,
                needs=tuple(needs),
                help_channel=self.config.help_channel,
            )
            text = self.composer.compose(context)
            logger.info("reminder_message for %s:\n%s", email, text, extra={"email": email, "text": text})

            if self.config.dry_run:
                result.dry_run = True
                self.summary.dry_run += 1
            else:
                self.sink.deliver(recipient, text)
                result.delivered = True
                self.summary.notified += 1
        except ReminderError as exc:
            logger.error(
                "reminder_failed",
                extra={
                    "correlation_id": self.correlation_id,
                    "email": email,
                    "error_code": exc.error_code,
                    "error": str(exc),
                },
            )
            self.summary.errors.append(
                ReminderBatchError(
                    email=email,
                    person_id=record.id,
                    error_code=exc.error_code,
                    error_message=str(exc),
                )
            )

        self.summary.recipients.append(result)
