"""Tests for the store and auth HTTP clients."""

import json

import httpx
import pytest

from tillbook.api.auth_client import AuthClient
from tillbook.api.store_client import StoreClient
from tillbook.utils.exceptions import AuthenticationError, RateLimitError, StoreAPIError


class Recorder:
    """MockTransport handler that records requests and replays a response."""

    def __init__(self, status_code=200, body=None, headers=None):
        self.requests = []
        self.status_code = status_code
        self.body = body
        self.headers = headers or {}

    def __call__(self, request):
        self.requests.append(request)
        if self.body is None:
            return httpx.Response(self.status_code, headers=self.headers)
        return httpx.Response(self.status_code, json=self.body, headers=self.headers)

    @property
    def last(self):
        return self.requests[-1]


def make_store(handler, access_token=None):
    return StoreClient(access_token=access_token, transport=httpx.MockTransport(handler))


def make_auth(handler):
    return AuthClient(transport=httpx.MockTransport(handler))


class TestStoreClient:
    """Tests for StoreClient."""

    def test_list_records(self):
        """Test listing rows with server-side ordering."""
        handler = Recorder(body=[{"id": "S-1"}, {"id": "S-2"}])

        with make_store(handler) as client:
            rows = client.list_records("sales", order_by="timestamp", descending=True)

        assert [row["id"] for row in rows] == ["S-1", "S-2"]
        assert handler.last.method == "GET"
        assert handler.last.url.path == "/rest/v1/sales"
        assert handler.last.url.params["order"] == "timestamp.desc"
        assert handler.last.url.params["select"] == "*"

    def test_list_records_invalid_json(self):
        """Test a non-JSON body is reported as a store failure."""
        def handler(request):
            return httpx.Response(200, text="<html>maintenance</html>")

        with make_store(handler) as client:
            with pytest.raises(StoreAPIError, match="invalid JSON"):
                client.list_records("inventory")

    def test_auth_headers(self):
        """Test the user token is sent alongside the project key."""
        handler = Recorder(body=[])

        with make_store(handler, access_token="user-jwt") as client:
            client.list_records("inventory")

        assert handler.last.headers["apikey"] == "test-anon-key"
        assert handler.last.headers["Authorization"] == "Bearer user-jwt"
        assert handler.last.headers["Accept-Profile"] == "public"

    def test_anonymous_falls_back_to_project_key(self):
        """Test requests without a session use the project key as bearer."""
        handler = Recorder(body=[])

        with make_store(handler) as client:
            client.list_records("inventory")

        assert handler.last.headers["Authorization"] == "Bearer test-anon-key"

    def test_insert_record(self):
        """Test a row is posted as a one-element array."""
        handler = Recorder(status_code=201)

        with make_store(handler) as client:
            client.insert_record("expenses", {"id": "E-1", "amount": 800.0})

        assert handler.last.method == "POST"
        assert json.loads(handler.last.content) == [{"id": "E-1", "amount": 800.0}]
        assert handler.last.headers["Prefer"] == "return=minimal"

    def test_update_record(self):
        """Test a partial update filters by id."""
        handler = Recorder(status_code=204)

        with make_store(handler) as client:
            client.update_record("inventory", "A", {"quantity": 6})

        assert handler.last.method == "PATCH"
        assert handler.last.url.params["id"] == "eq.A"
        assert json.loads(handler.last.content) == {"quantity": 6}

    def test_delete_record(self):
        """Test deleting filters by id."""
        handler = Recorder(status_code=204)

        with make_store(handler) as client:
            client.delete_record("inventory", "A")

        assert handler.last.method == "DELETE"
        assert handler.last.url.params["id"] == "eq.A"

    def test_http_error_raises_store_error(self):
        """Test a non-2xx answer surfaces as StoreAPIError with the server message."""
        handler = Recorder(status_code=401, body={"message": "JWT expired"})

        with make_store(handler) as client:
            with pytest.raises(StoreAPIError, match="JWT expired") as exc_info:
                client.update_record("inventory", "A", {"quantity": 6})

        assert exc_info.value.details["status_code"] == 401

    def test_rate_limit(self):
        """Test a 429 answer raises RateLimitError, itself a StoreAPIError."""
        handler = Recorder(status_code=429, headers={"Retry-After": "3"})

        with make_store(handler) as client:
            with pytest.raises(RateLimitError, match="Retry after 3s"):
                client.list_records("inventory")

        assert issubclass(RateLimitError, StoreAPIError)

    def test_ping(self):
        """Test the connectivity probe reads one inventory id."""
        handler = Recorder(body=[])

        with make_store(handler) as client:
            assert client.ping() is True

        assert handler.last.url.params["limit"] == "1"


class TestAuthClient:
    """Tests for AuthClient."""

    def test_sign_in(self):
        """Test a password sign-in returns the role from user metadata."""
        handler = Recorder(body={
            "access_token": "jwt-1",
            "user": {"id": "u-1", "email": "owner@example.com", "user_metadata": {"role": "admin"}}
        })

        with make_auth(handler) as client:
            session = client.sign_in("owner@example.com", "secret")

        assert session.is_admin is True
        assert session.access_token == "jwt-1"
        assert handler.last.url.path == "/auth/v1/token"
        assert handler.last.url.params["grant_type"] == "password"

    def test_sign_in_without_role_is_cashier(self):
        """Test a user without role metadata is a cashier."""
        handler = Recorder(body={"access_token": "jwt-2", "user": {"id": "u-2", "email": "till@example.com"}})

        with make_auth(handler) as client:
            session = client.sign_in("till@example.com", "secret")

        assert session.role == "cashier"

    def test_sign_in_rejected(self):
        """Test bad credentials raise AuthenticationError."""
        handler = Recorder(status_code=400, body={"error_description": "Invalid login credentials"})

        with make_auth(handler) as client:
            with pytest.raises(AuthenticationError, match="Invalid login credentials"):
                client.sign_in("till@example.com", "wrong")

    def test_sign_up_sends_role(self):
        """Test sign-up stores the role in user metadata."""
        handler = Recorder(body={"user": {"id": "u-3"}})

        with make_auth(handler) as client:
            session = client.sign_up("new@example.com", "secret", role="admin")

        assert session is None
        assert json.loads(handler.last.content)["data"] == {"role": "admin"}

    def test_sign_up_invalid_role(self):
        """Test an unknown role is refused before any request."""
        handler = Recorder(body={})

        with make_auth(handler) as client:
            with pytest.raises(ValueError, match="Role must be one of"):
                client.sign_up("new@example.com", "secret", role="owner")

        assert handler.requests == []

    def test_get_user(self):
        """Test resolving a bearer token."""
        handler = Recorder(body={"id": "u-1", "email": "owner@example.com", "user_metadata": {"role": "admin"}})

        with make_auth(handler) as client:
            session = client.get_user("jwt-1")

        assert session.email == "owner@example.com"
        assert handler.last.headers["Authorization"] == "Bearer jwt-1"
