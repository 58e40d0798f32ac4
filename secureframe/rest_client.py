"""Access-key client for the Secureframe REST API."""

from __future__ import annotations

import logging
from typing import Dict, FrozenSet, List, Optional

import requests
from pydantic import ValidationError

from compliance.compliance_models import PersonRecord
from compliance.compliance_policy import ALL_TASKS_COMPLETED
from compliance_errors import FetchError
from secureframe.personnel_source import PersonnelSource
from secureframe.secureframe_models import SecureframeUserList

logger = logging.getLogger(__name__)

REST_ENDPOINT = "https://api.secureframe.com"


class SecureframeRestSource(PersonnelSource):
    name = "secureframe_rest"

    def __init__(
        self,
        *,
        access_key: Optional[str],
        secret_key: Optional[str],
        endpoint: str = REST_ENDPOINT,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        super().__init__(timeout=timeout, session=session)
        if not access_key or not secret_key:
            raise ValueError("Secureframe access key and secret key are required for the REST source")
        self.access_key = access_key
        self.secret_key = secret_key
        self.endpoint = endpoint.rstrip("/")

    def _users(self) -> SecureframeUserList:
        url = f"{self.endpoint}/users"
        headers = {"Authorization": f"{self.access_key} {self.secret_key}"}
        body = self._request_json("GET", url, headers=headers)
        try:
            return SecureframeUserList.model_validate(body)
        except ValidationError as exc:
            raise FetchError(f"GET {url}: {exc}") from exc

    def fetch_roster(self) -> List[PersonRecord]:
        users = self._users()
        logger.info("secureframe_users_loaded", extra={"user_count": len(users.data)})
        return [user.attributes.to_record() for user in users.data]

    def fetch_user_map(self, required_types: FrozenSet[str]) -> Dict[str, Dict[str, str]]:
        """Noncompliant in-scope users keyed by id, with a small attribute map each."""
        users: Dict[str, Dict[str, str]] = {}
        for user in self._users().data:
            attrs = user.attributes
            valid_type = (attrs.employee_type or "").strip().lower() in required_types
            noncompliant = attrs.personnel_status != ALL_TASKS_COMPLETED
            if all((attrs.active, attrs.invited, attrs.in_audit_scope, valid_type, noncompliant)):
                users[attrs.id] = attrs.to_status_map()
        return users
