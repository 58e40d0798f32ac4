from __future__ import annotations

import logging
from typing import Optional

from slack_sdk import WebClient

from compliance.compliance_models import ReminderRunSummary
from compliance.reminder_batch import ReminderBatchProcessor
from reminder_config import SOURCE_GRAPHQL, ReminderConfig, load_reminder_config
from secureframe.graphql_client import SecureframeGraphQLSource
from secureframe.personnel_source import PersonnelSource
from secureframe.rest_client import SecureframeRestSource
from slack_service import (
    LoggingNotificationSink,
    NotificationSink,
    SlackNotificationSink,
    SlackNotifier,
)
from summary_store import SummaryStore

logger = logging.getLogger(__name__)


def build_personnel_source(config: ReminderConfig) -> PersonnelSource:
    if config.source == SOURCE_GRAPHQL:
        return SecureframeGraphQLSource(
            token=config.secureframe_token,
            company_id=config.company_id,
            company_user_id=config.company_user_id,
            timeout=config.http_timeout,
        )
    return SecureframeRestSource(
        access_key=config.access_key,
        secret_key=config.secret_key,
        timeout=config.http_timeout,
    )


def build_notification_sink(config: ReminderConfig) -> NotificationSink:
    if not config.slack_token:
        logger.warning("slack_token_missing_messages_will_only_be_logged")
        return LoggingNotificationSink()
    logger.info("slack_client_configured", extra={"token_bytes": len(config.slack_token)})
    return SlackNotificationSink(token=config.slack_token)


def build_notifier(config: ReminderConfig) -> Optional[SlackNotifier]:
    if not config.slack_token or not config.report_channel:
        return None
    return SlackNotifier(client=WebClient(token=config.slack_token), channel=config.report_channel)


def resolve_company_name(config: ReminderConfig, source: PersonnelSource) -> str:
    """Configured company name, or the one Secureframe reports for the token."""
    if config.company_name:
        return config.company_name
    if isinstance(source, SecureframeGraphQLSource):
        company = source.get_company()
        logger.info("secureframe_company_resolved", extra={"company": company.name})
        return company.name
    return ""


def run_compliance_reminders(
    config: Optional[ReminderConfig] = None,
    notifier: Optional[SlackNotifier] = None,
) -> ReminderRunSummary:
    """Execute one reminder run, keep the summary, and report it to Slack."""
    config = config or load_reminder_config()
    source = build_personnel_source(config)
    processor = ReminderBatchProcessor(
        config,
        source=source,
        sink=build_notification_sink(config),
        company_name=resolve_company_name(config, source),
    )
    summary = processor.run()
    SummaryStore.record_run(summary, dry_run=config.dry_run)

    if notifier:
        try:
            notifier.notify_reminder_run(summary, dry_run=config.dry_run)
        except Exception as exc:  # pragma: no cover - logging path
            logger.error("reminder_report_failed", exc_info=True, extra={"error": str(exc)})

    return summary
