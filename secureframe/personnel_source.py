"""Shared plumbing for the Secureframe personnel sources."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import requests

from compliance.compliance_models import PersonRecord
from compliance_errors import FetchError

logger = logging.getLogger(__name__)


class PersonnelSource(ABC):
    """Anything that can produce the current personnel roster."""

    name = "personnel"

    def __init__(self, *, timeout: float = 30.0, session: Optional[requests.Session] = None) -> None:
        self.timeout = timeout
        self.session = session or requests.Session()

    @abstractmethod
    def fetch_roster(self) -> List[PersonRecord]:
        """Return every person known to the vendor, or raise FetchError."""

    def _request_json(
        self,
        method: str,
        url: str,
        *,
        headers: Dict[str, str],
        payload: Optional[Dict[str, Any]] = None,
    ) -> Any:
        logger.debug(
            "secureframe_request",
            extra={"source": self.name, "url": url, "method": method},
        )

        try:
            response = self.session.request(
                method,
                url,
                headers=headers,
                json=payload,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.error(
                "secureframe_http_error",
                extra={"source": self.name, "url": url, "error": str(exc)},
            )
            raise FetchError(f"{method} {url}: {exc}") from exc

        if response.status_code != 200:
            logger.error(
                "secureframe_unexpected_status",
                extra={"source": self.name, "url": url, "status": response.status_code},
            )
            raise FetchError(f"{method} {url}: unexpected status code {response.status_code}")

        try:
            return response.json()
        except ValueError as exc:
            logger.error(
                "secureframe_non_json_response",
                extra={"source": self.name, "url": url, "status": response.status_code},
            )
            raise FetchError(f"{method} {url}: response is not JSON") from exc
