import logging
from datetime import datetime, timedelta, timezone
from typing import List
from unittest.mock import MagicMock
from urllib.error import URLError

import pytest

from compliance.compliance_models import PersonRecord, RecipientHandle
from compliance.compliance_policy import EVALUATION_MODE_ONBOARDING_STATUS
from compliance.message_composer import MessageComposer
from compliance.reminder_batch import ReminderBatchProcessor
from compliance_errors import DeliveryError, FetchError, NotFoundError
from reminder_config import ReminderConfig
from slack_service import NotificationSink, SlackNotificationSink

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
TEMPLATE = "{{ Greetings }} {{ FirstName }} ({{ Company }}): {{ InterpretedNeeds | join('; ') }}"


class StubSource:
    def __init__(self, records=None, error=None):
        self.records = records or []
        self.error = error
        self.calls = 0

    def fetch_roster(self):
        self.calls += 1
        if self.error:
            raise self.error
        return list(self.records)


class StubSink(NotificationSink):
    def __init__(self, *, missing=(), failing=()):
        self.missing = set(missing)
        self.failing = set(failing)
        self.resolved: List[str] = []
        self.delivered: List[tuple] = []

    def resolve_recipient(self, email):
        self.resolved.append(email)
        if email in self.missing:
            raise NotFoundError("users_not_found", email=email)
        return RecipientHandle(email=email, user_id=f"U-{email}", first_name=None)

    def deliver(self, recipient, text):
        if recipient.email in self.failing:
            raise DeliveryError("channel_not_found", email=recipient.email)
        self.delivered.append((recipient.email, text))


def _person(person_id="p1", email="jane@example.com", **overrides) -> PersonRecord:
    payload = {
        "id": person_id,
        "email": email,
        "name": "Jane Doe",
        "active": True,
        "invited": True,
        "in_audit_scope": True,
        "employee_type": "Employee",
        "policies_accepted": False,
        "security_training_completed": True,
        "invited_at": NOW - timedelta(days=710),
    }
    payload.update(overrides)
    return PersonRecord(**payload)


def _processor(records, *, sink=None, sleeps=None, composer=None, **config_overrides):
    config_values = {"company_name": "Acme", "help_channel": "#help"}
    config_values.update(config_overrides)
    config = ReminderConfig(**config_values)
    sleep_calls = sleeps if sleeps is not None else []
    return ReminderBatchProcessor(
        config,
        source=StubSource(records),
        sink=sink or StubSink(),
        composer=composer or MessageComposer(template_text=TEMPLATE),
        clock=lambda: NOW,
        sleep=sleep_calls.append,
        correlation_id="test-run",
    )


def test_noncompliant_person_is_notified_with_composed_text():
    sink = StubSink()
    processor = _processor([_person()], sink=sink)

    summary = processor.run()

    assert summary.total_seen == 1
    assert summary.in_scope == 1
    assert summary.noncompliant == 1
    assert summary.notified == 1
    assert len(sink.delivered) == 1
    email, text = sink.delivered[0]
    assert email == "jane@example.com"
    assert "Jane (Acme)" in text
    assert "Accept or re-accept our company policies" in text


def test_compliant_and_out_of_scope_people_are_skipped():
    records = [
        _person("p1", "done@example.com", policies_accepted=True),
        _person("p2", "vendor@example.com", employee_type="vendor"),
        _person("p3", "inactive@example.com", active=False),
    ]
    sink = StubSink()

    summary = _processor(records, sink=sink).run()

    assert summary.total_seen == 3
    assert summary.in_scope == 1
    assert summary.noncompliant == 0
    assert sink.resolved == []
    assert sink.delivered == []


def test_dry_run_never_delivers_but_logs_text(caplog):
    sink = StubSink()
    processor = _processor([_person()], sink=sink, dry_run=True)

    with caplog.at_level(logging.INFO, logger="compliance.reminder_batch"):
        summary = processor.run()

    assert sink.delivered == []
    assert summary.dry_run == 1
    assert summary.notified == 0
    logged = [r for r in caplog.records if r.msg.startswith("reminder_message")]
    assert len(logged) == 1
    assert "Accept or re-accept our company policies" in logged[0].text


def test_per_recipient_failures_do_not_stop_the_run():
    records = [
        _person("p1", "missing@example.com"),
        _person("p2", "broken@example.com"),
        _person("p3", "ok@example.com"),
    ]
    sink = StubSink(missing={"missing@example.com"}, failing={"broken@example.com"})

    summary = _processor(records, sink=sink).run()

    assert [e.error_code for e in summary.errors] == ["recipient_not_found", "delivery_failed"]
    assert summary.notified == 1
    assert [email for email, _ in sink.delivered] == ["ok@example.com"]
    assert len(summary.recipients) == 3


def test_render_error_is_recorded_and_run_continues():
    records = [_person("p1", "a@example.com"), _person("p2", "b@example.com")]
    sink = StubSink()
    composer = MessageComposer(template_text="{{ Unknown }}")

    summary = _processor(records, sink=sink, composer=composer).run()

    assert [e.error_code for e in summary.errors] == ["render_failed", "render_failed"]
    assert sink.delivered == []


def test_pacing_delay_between_deliveries():
    records = [_person(f"p{i}", f"p{i}@example.com") for i in range(3)]
    sleeps = []

    _processor(records, sleeps=sleeps).run()

    assert sleeps == [0.25, 0.25]


def test_test_message_target_redirects_first_message_and_stops():
    records = [_person("p1", "a@example.com"), _person("p2", "b@example.com")]
    sink = StubSink()
    sleeps = []

    summary = _processor(
        records, sink=sink, sleeps=sleeps, test_message_target="me@example.com"
    ).run()

    assert sink.resolved == ["me@example.com"]
    assert [email for email, _ in sink.delivered] == ["me@example.com"]
    assert summary.recipients[0].person_id == "p1"
    assert sleeps == []


def test_test_message_target_stops_even_when_delivery_fails():
    records = [_person("p1", "a@example.com"), _person("p2", "b@example.com")]
    sink = StubSink(failing={"me@example.com"})

    summary = _processor(records, sink=sink, test_message_target="me@example.com").run()

    assert sink.resolved == ["me@example.com"]
    assert summary.error_count == 1


def test_window_gating_only_notifies_people_inside_their_window():
    records = [
        _person("p1", "inside@example.com", invited_at=NOW - timedelta(days=713)),
        _person("p2", "outside@example.com", invited_at=NOW - timedelta(days=400)),
        _person("p3", "noanchor@example.com", invited_at=None),
    ]
    sink = StubSink()

    summary = _processor(records, sink=sink, window_gating=True).run()

    assert [email for email, _ in sink.delivered] == ["inside@example.com"]
    assert summary.outside_window == 1
    assert summary.missing_anchor == 1
    assert summary.recipients[0].window_index == 0


def test_window_gating_off_ignores_anchor():
    sink = StubSink()

    _processor([_person(invited_at=None)], sink=sink).run()

    assert len(sink.delivered) == 1


def test_onboarding_status_mode_uses_aggregate_status():
    records = [
        _person("p1", "done@example.com", personnel_status="all_tasks_completed",
                onboarding_status="not_started", policies_accepted=None),
        _person("p2", "training@example.com", personnel_status="tasks_pending",
                onboarding_status="security_training", policies_accepted=None),
    ]
    sink = StubSink()

    summary = _processor(
        records, sink=sink, evaluation_mode=EVALUATION_MODE_ONBOARDING_STATUS
    ).run()

    assert summary.noncompliant == 1
    assert [email for email, _ in sink.delivered] == ["training@example.com"]
    assert "Cybersecurity Awareness Training" in sink.delivered[0][1]


def test_fetch_error_aborts_the_run():
    config = ReminderConfig(company_name="Acme")
    sink = StubSink()
    processor = ReminderBatchProcessor(
        config,
        source=StubSource(error=FetchError("boom")),
        sink=sink,
        composer=MessageComposer(template_text=TEMPLATE),
    )

    with pytest.raises(FetchError):
        processor.run()
    assert sink.resolved == []


def test_slack_first_name_wins_over_record_name():
    class NamedSink(StubSink):
        def resolve_recipient(self, email):
            super().resolve_recipient(email)
            return RecipientHandle(email=email, user_id="U1", first_name="Janey")

    sink = NamedSink()

    _processor([_person()], sink=sink).run()

    assert "Janey (Acme)" in sink.delivered[0][1]


def test_slack_transport_failure_for_one_recipient_does_not_stop_the_run():
    client = MagicMock()
    client.users_lookupByEmail.return_value = {"ok": True, "user": {"id": "U1", "profile": {}}}
    client.chat_postMessage.side_effect = [URLError("timed out"), None, None]
    records = [_person(f"p{i}", f"p{i}@example.com") for i in range(3)]

    summary = _processor(records, sink=SlackNotificationSink(client=client)).run()

    assert summary.notified == 2
    assert [(e.email, e.error_code) for e in summary.errors] == [("p0@example.com", "delivery_failed")]
    assert client.chat_postMessage.call_count == 3


def test_template_type_error_is_recorded_and_run_continues():
    records = [_person("p1", "a@example.com"), _person("p2", "b@example.com")]
    sink = StubSink()
    composer = MessageComposer(template_text="{{ Needs + 1 }}")

    summary = _processor(records, sink=sink, composer=composer).run()

    assert [e.error_code for e in summary.errors] == ["render_failed", "render_failed"]
    assert len(summary.recipients) == 2


def test_each_run_starts_with_fresh_counters():
    processor = _processor([_person()])

    processor.run()
    summary = processor.run()

    assert summary.total_seen == 1
    assert summary.notified == 1
    assert len(summary.recipients) == 1
