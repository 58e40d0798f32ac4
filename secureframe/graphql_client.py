"""Bearer-token client for the Secureframe GraphQL API."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import requests
from pydantic import ValidationError

from compliance.compliance_models import PersonRecord
from compliance_errors import FetchError
from secureframe.personnel_source import PersonnelSource
from secureframe.secureframe_models import PersonnelPage, SecureframeCompany

logger = logging.getLogger(__name__)

GRAPHQL_ENDPOINT = "https://app.secureframe.com/graphql"
PERSONNEL_PAGE_SIZE = 1000

PERSONNEL_QUERY = """
fragment PersonnelTabContentsCompanyUsers on CompanyUser {
  active
  email
  employeeType
  endDate
  id
  inAuditScope
  invited
  invitedAt
  name
  policiesAccepted
  policiesAcceptedAt
  securityTrainingCompleted
  securityTrainingCompletedAt
  startDate
  role
  __typename
}

query personnelTabContentsSearch($searchkick: CompanyUserSearchkickInput, $companyId: ID) {
  searchCompanyUsers(searchkick: $searchkick, companyId: $companyId) {
    data {
      collection {
        ...PersonnelTabContentsCompanyUsers
        __typename
      }
      metadata {
        currentPage
        limitValue
        totalCount
        totalPages
        __typename
      }
      __typename
    }
    __typename
  }
}
"""

COMPANY_QUERY = """
query getCompanyUsersForCurrentUser {
  getCompanyUsersForCurrentUser {
    id
    company {
      id
      name
      __typename
    }
    __typename
  }
}
"""


class SecureframeGraphQLSource(PersonnelSource):
    name = "secureframe_graphql"

    def __init__(
        self,
        *,
        token: Optional[str],
        company_id: Optional[str],
        company_user_id: Optional[str],
        endpoint: str = GRAPHQL_ENDPOINT,
        page_size: int = PERSONNEL_PAGE_SIZE,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        super().__init__(timeout=timeout, session=session)
        if not token:
            raise ValueError("Secureframe bearer token is required for the GraphQL source")
        self.token = token
        self.company_id = company_id
        self.company_user_id = company_user_id
        self.endpoint = endpoint
        self.page_size = page_size

    def _query(self, operation: str, query: str, variables: Dict[str, Any]) -> Dict[str, Any]:
        headers = {
            "Authorization": f"Bearer {self.token}",
            "Content-Type": "application/json",
        }
        payload = {"operationName": operation, "variables": variables, "query": query}
        body = self._request_json("POST", self.endpoint, headers=headers, payload=payload)

        if not isinstance(body, dict):
            raise FetchError(f"{operation}: unexpected response shape")
        if body.get("errors"):
            logger.error(
                "secureframe_graphql_errors",
                extra={"operation": operation, "errors": body["errors"]},
            )
            raise FetchError(f"{operation}: {body['errors']}")
        return body.get("data") or {}

    def personnel(self) -> List[PersonRecord]:
        """Page through personnelTabContentsSearch and normalize every person."""
        records: List[PersonRecord] = []
        page = 1
        while True:
            variables: Dict[str, Any] = {
                "searchkick": {"page": page, "perPage": self.page_size, "query": "*"},
            }
            if self.company_user_id:
                variables["current_company_user_id"] = self.company_user_id
            if self.company_id:
                variables["companyId"] = self.company_id

            data = self._query("personnelTabContentsSearch", PERSONNEL_QUERY, variables)
            try:
                result = PersonnelPage.model_validate(
                    ((data.get("searchCompanyUsers") or {}).get("data")) or {}
                )
            except ValidationError as exc:
                raise FetchError(f"personnelTabContentsSearch: {exc}") from exc

            records.extend(person.to_record() for person in result.collection)
            logger.info(
                "secureframe_personnel_page",
                extra={
                    "page": page,
                    "total_pages": result.metadata.total_pages,
                    "page_count": len(result.collection),
                },
            )

            if page >= result.metadata.total_pages or not result.collection:
                break
            page += 1

        return records

    def fetch_roster(self) -> List[PersonRecord]:
        return self.personnel()

    def get_company(self) -> SecureframeCompany:
        data = self._query("getCompanyUsersForCurrentUser", COMPANY_QUERY, {})
        entries = data.get("getCompanyUsersForCurrentUser") or []
        if not entries:
            raise FetchError("getCompanyUsersForCurrentUser: no company returned")
        try:
            return SecureframeCompany.model_validate(entries[0].get("company") or {})
        except ValidationError as exc:
            raise FetchError(f"getCompanyUsersForCurrentUser: {exc}") from exc
