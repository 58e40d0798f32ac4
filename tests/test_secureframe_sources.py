from datetime import datetime, timezone

import pytest
import requests

from compliance_errors import FetchError
from secureframe.graphql_client import SecureframeGraphQLSource
from secureframe.rest_client import SecureframeRestSource


class FakeResponse:
    def __init__(self, payload=None, status_code=200, json_error=False):
        self.payload = payload
        self.status_code = status_code
        self.json_error = json_error

    def json(self):
        if self.json_error:
            raise ValueError("not json")
        return self.payload


class FakeSession:
    def __init__(self, responses=None, error=None):
        self.responses = list(responses or [])
        self.error = error
        self.calls = []

    def request(self, method, url, *, headers, json=None, timeout=None):
        self.calls.append({"method": method, "url": url, "headers": headers, "json": json, "timeout": timeout})
        if self.error:
            raise self.error
        return self.responses.pop(0)


def _graphql_person(**overrides):
    person = {
        "id": "p1",
        "email": "jane@example.com",
        "name": "Jane Doe",
        "active": True,
        "invited": True,
        "inAuditScope": True,
        "employeeType": "employee",
        "invitedAt": "2022-01-10T15:04:05Z",
        "policiesAccepted": False,
        "policiesAcceptedAt": "0001-01-01T00:00:00Z",
        "securityTrainingCompleted": True,
        "securityTrainingCompletedAt": "2023-02-01T00:00:00Z",
        "backgroundCheckStatus": "not_started",
        "__typename": "CompanyUser",
    }
    person.update(overrides)
    return person


def _personnel_page(people, page=1, total_pages=1):
    return {
        "data": {
            "searchCompanyUsers": {
                "data": {
                    "collection": people,
                    "metadata": {
                        "currentPage": page,
                        "limitValue": 1000,
                        "totalCount": len(people),
                        "totalPages": total_pages,
                    },
                }
            }
        }
    }


def _graphql_source(session):
    return SecureframeGraphQLSource(
        token="sf-token",
        company_id="company-1",
        company_user_id="user-1",
        session=session,
        timeout=5,
    )


def test_graphql_personnel_normalizes_records_and_sends_bearer_token():
    session = FakeSession([FakeResponse(_personnel_page([_graphql_person()]))])

    records = _graphql_source(session).fetch_roster()

    assert len(records) == 1
    record = records[0]
    assert record.email == "jane@example.com"
    assert record.in_audit_scope is True
    assert record.policies_accepted is False
    assert record.security_training_completed is True
    assert record.invited_at == datetime(2022, 1, 10, 15, 4, 5, tzinfo=timezone.utc)

    call = session.calls[0]
    assert call["method"] == "POST"
    assert call["headers"]["Authorization"] == "Bearer sf-token"
    assert call["json"]["operationName"] == "personnelTabContentsSearch"
    assert call["json"]["variables"]["searchkick"] == {"page": 1, "perPage": 1000, "query": "*"}
    assert call["json"]["variables"]["companyId"] == "company-1"
    assert call["timeout"] == 5


def test_graphql_personnel_follows_pages():
    session = FakeSession(
        [
            FakeResponse(_personnel_page([_graphql_person(id="p1")], page=1, total_pages=2)),
            FakeResponse(_personnel_page([_graphql_person(id="p2")], page=2, total_pages=2)),
        ]
    )

    records = _graphql_source(session).personnel()

    assert [r.id for r in records] == ["p1", "p2"]
    assert [c["json"]["variables"]["searchkick"]["page"] for c in session.calls] == [1, 2]


def test_graphql_null_invited_at_is_kept_unset():
    session = FakeSession([FakeResponse(_personnel_page([_graphql_person(invitedAt=None)]))])

    records = _graphql_source(session).personnel()

    assert records[0].invited_at is None


@pytest.mark.parametrize(
    "response",
    [
        FakeResponse({"errors": [{"message": "unauthorized"}]}),
        FakeResponse(None, status_code=401),
        FakeResponse(None, json_error=True),
        FakeResponse(_personnel_page([{"email": "no-id@example.com"}])),
    ],
)
def test_graphql_failures_raise_fetch_error(response):
    with pytest.raises(FetchError):
        _graphql_source(FakeSession([response])).personnel()


def test_transport_error_raises_fetch_error():
    session = FakeSession(error=requests.ConnectionError("down"))

    with pytest.raises(FetchError):
        _graphql_source(session).personnel()


def test_get_company_returns_first_company():
    payload = {
        "data": {
            "getCompanyUsersForCurrentUser": [
                {"id": "cu-1", "company": {"id": "c-1", "name": "Acme"}},
                {"id": "cu-2", "company": {"id": "c-2", "name": "Other"}},
            ]
        }
    }

    company = _graphql_source(FakeSession([FakeResponse(payload)])).get_company()

    assert company.name == "Acme"


def test_get_company_without_entries_raises():
    payload = {"data": {"getCompanyUsersForCurrentUser": []}}

    with pytest.raises(FetchError):
        _graphql_source(FakeSession([FakeResponse(payload)])).get_company()


def test_graphql_source_requires_token():
    with pytest.raises(ValueError):
        SecureframeGraphQLSource(token=None, company_id=None, company_user_id=None)


def _rest_user(user_id, **overrides):
    attributes = {
        "id": user_id,
        "email": f"{user_id}@example.com",
        "name": f"User {user_id}",
        "active": True,
        "invited": True,
        "in_audit_scope": True,
        "employee_type": "employee",
        "invited_at": "2021-05-01T00:00:00Z",
        "onboarding_status": "not_started",
        "personnel_status": "tasks_pending",
        "created_at": "2021-04-01T00:00:00Z",
    }
    attributes.update(overrides)
    return {"id": user_id, "type": "user", "attributes": attributes}


def _rest_source(session):
    return SecureframeRestSource(access_key="ak", secret_key="sk", session=session)


def test_rest_roster_normalizes_status_fields():
    session = FakeSession([FakeResponse({"data": [_rest_user("u1")]})])

    records = _rest_source(session).fetch_roster()

    assert records[0].onboarding_status == "not_started"
    assert records[0].personnel_status == "tasks_pending"
    assert records[0].policies_accepted is None
    call = session.calls[0]
    assert call["method"] == "GET"
    assert call["url"] == "https://api.secureframe.com/users"
    assert call["headers"]["Authorization"] == "ak sk"


def test_rest_user_map_keeps_only_noncompliant_in_scope_users():
    users = [
        _rest_user("u1", employee_type="Employee"),
        _rest_user("u2", personnel_status="all_tasks_completed"),
        _rest_user("u3", employee_type="vendor"),
        _rest_user("u4", in_audit_scope=False),
    ]
    session = FakeSession([FakeResponse({"data": users})])

    user_map = _rest_source(session).fetch_user_map(frozenset({"employee", "contractor"}))

    assert list(user_map) == ["u1"]
    assert user_map["u1"] == {
        "name": "User u1",
        "email": "u1@example.com",
        "employee_type": "Employee",
        "onboarding_status": "not_started",
        "personnel_status": "tasks_pending",
    }


def test_rest_non_200_raises_fetch_error():
    with pytest.raises(FetchError):
        _rest_source(FakeSession([FakeResponse(None, status_code=500)])).fetch_roster()


def test_rest_source_requires_both_keys():
    with pytest.raises(ValueError):
        SecureframeRestSource(access_key="ak", secret_key=None)
