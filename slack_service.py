import logging
from typing import Optional

from slack_sdk import WebClient
from slack_sdk.errors import SlackApiError, SlackClientError

from compliance.compliance_models import RecipientHandle, ReminderRunSummary
from compliance_errors import DeliveryError, NotFoundError

slack_logger = logging.getLogger("slack")


def _slack_error_code(exc: SlackApiError) -> Optional[str]:
    response = getattr(exc, "response", None)
    if response is None:
        return None
    try:
        return response.get("error")
    except AttributeError:
        return None


class NotificationSink:
    """Resolves people on the chat platform and delivers reminder text to them."""

    name = "sink"

    def resolve_recipient(self, email: str) -> RecipientHandle:
        raise NotImplementedError

    def deliver(self, recipient: RecipientHandle, text: str) -> None:
        raise NotImplementedError


class SlackNotificationSink(NotificationSink):
    name = "slack"

    def __init__(self, *, client: Optional[WebClient] = None, token: Optional[str] = None) -> None:
        if client is None:
            if not token:
                raise ValueError("SlackNotificationSink needs a WebClient or a bot token")
            client = WebClient(token=token)
        self.client = client

    def resolve_recipient(self, email: str) -> RecipientHandle:
        try:
            response = self.client.users_lookupByEmail(email=email)
        except SlackApiError as exc:
            code = _slack_error_code(exc)
            slack_logger.warning(
                "slack_user_lookup_failed",
                extra={"email": email, "error": code},
            )
            raise NotFoundError(f"get user by email: {code or exc}", email=email) from exc
        except (SlackClientError, OSError) as exc:
            # urllib transport failures (URLError, timeouts) surface as OSError
            slack_logger.warning(
                "slack_user_lookup_unreachable",
                extra={"email": email, "error": str(exc)},
            )
            raise NotFoundError(f"get user by email: {exc}", email=email) from exc

        user = response.get("user") or {}
        if not user.get("id"):
            raise NotFoundError("get user by email: no user id returned", email=email)

        profile = user.get("profile") or {}
        slack_logger.info(
            "slack_user_found",
            extra={"email": email, "slack_user_id": user["id"]},
        )
        return RecipientHandle(
            email=email,
            user_id=user["id"],
            first_name=profile.get("first_name") or None,
        )

    def deliver(self, recipient: RecipientHandle, text: str) -> None:
        if not recipient.user_id:
            raise DeliveryError("recipient has no Slack user id", email=recipient.email)
        try:
            self.client.chat_postMessage(channel=recipient.user_id, text=text)
        except SlackApiError as exc:
            code = _slack_error_code(exc)
            slack_logger.error(
                "slack_post_message_failed",
                extra={"email": recipient.email, "error": code},
            )
            raise DeliveryError(f"post message: {code or exc}", email=recipient.email) from exc
        except (SlackClientError, OSError) as exc:
            slack_logger.error(
                "slack_post_message_unreachable",
                extra={"email": recipient.email, "error": str(exc)},
            )
            raise DeliveryError(f"post message: {exc}", email=recipient.email) from exc


class LoggingNotificationSink(NotificationSink):
    """Stand-in used when no Slack token is configured; nothing leaves the process."""

    name = "log"

    def resolve_recipient(self, email: str) -> RecipientHandle:
        return RecipientHandle(email=email)

    def deliver(self, recipient: RecipientHandle, text: str) -> None:
        slack_logger.info(
            "slack_delivery_skipped_no_client",
            extra={"email": recipient.email, "text": text},
        )


class SlackNotifier:
    """Posts a one-line report of each reminder run to an operator channel."""

    def __init__(self, *, client: Optional[WebClient] = None, channel: Optional[str] = None) -> None:
        self.client = client
        self.channel = channel

    def notify_reminder_run(self, summary: ReminderRunSummary, *, dry_run: bool = False) -> bool:
        if not self.client or not self.channel:
            slack_logger.warning("slack_report_channel_missing")
            return False

        prefix = "Compliance reminders (dry run)" if dry_run else "Compliance reminders"
        text = (
            f"{prefix}: {summary.total_seen} people checked, {summary.noncompliant} noncompliant, "
            f"{summary.notified} notified, {summary.error_count} errors"
        )
        try:
            self.client.chat_postMessage(channel=self.channel, text=text)
        except SlackApiError as exc:
            slack_logger.error(
                "slack_report_failed",
                extra={"channel": self.channel, "error": _slack_error_code(exc)},
            )
            return False
        except (SlackClientError, OSError) as exc:
            slack_logger.error(
                "slack_report_failed",
                extra={"channel": self.channel, "error": str(exc)},
            )
            return False
        return True
