#!/usr/bin/env python3
"""
Run the compliance reminders once from the command line.

Usage:
    python run_reminders.py --dry-run
    python run_reminders.py --test-message-target me@example.com
    python run_reminders.py --list-noncompliant        # REST source only
"""

import argparse
import json
import logging
import sys

from batch_jobs import build_notifier, build_personnel_source, run_compliance_reminders
from compliance.compliance_filter import parse_required_types
from compliance_errors import FetchError
from reminder_config import load_reminder_config
from secureframe.rest_client import SecureframeRestSource

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Nag noncompliant personnel on Slack")
    parser.add_argument("--dry-run", action="store_true", default=None,
                        help="Compose and log messages without posting them")
    parser.add_argument("--test-message-target", default=None,
                        help="Send a single test message to this email and stop")
    parser.add_argument("--employee-types", default=None,
                        help="Comma-separated employee types to contact")
    parser.add_argument("--window-gating", action="store_true", default=None,
                        help="Only nag people inside their yearly reminder window")
    parser.add_argument("--list-noncompliant", action="store_true",
                        help="Print the noncompliant user map (REST source) and exit")
    args = parser.parse_args(argv)

    try:
        config = load_reminder_config(
            dry_run=args.dry_run,
            test_message_target=args.test_message_target,
            employee_types=args.employee_types,
            window_gating=args.window_gating,
        )

        if args.list_noncompliant:
            source = build_personnel_source(config)
            if not isinstance(source, SecureframeRestSource):
                parser.error("--list-noncompliant requires SECUREFRAME_SOURCE=rest")
            users = source.fetch_user_map(parse_required_types(config.employee_types))
            print(json.dumps(users, indent=2, sort_keys=True))
            return 0

        summary = run_compliance_reminders(config, build_notifier(config))
    except FetchError as exc:
        logger.error("secureframe_query_failed", extra={"error": str(exc)})
        return 1
    except ValueError as exc:
        logger.error("reminder_config_invalid", extra={"error": str(exc)})
        return 2

    print(json.dumps(summary.to_logging_dict(), indent=2, default=str))
    return 0


if __name__ == "__main__":
    sys.exit(main())
