"""
End-to-end tests for the authorization pipeline on SQLite.

Keys are issued and assigned through the services, then presented through
request headers the way a protected route would see them.
"""

import threading

import pytest

from api_key_service.authorization import AuthorizationPipeline, UsageRecorder
from api_key_service.context.identity_context import IdentityContext
from api_key_service.context.tenant_context import TenantContext
from api_key_service.enums import DenialReason, KeyStatus
from api_key_service.exceptions import (
    InsufficientPermissionsError,
    MissingCredentialsError,
    TenantNotAllowedError,
)
from api_key_service.schemas import APIKeyCreate, AuthRequest, RoutePolicy
from api_key_service.services import IdentityProvider, IdentityService
from tests.fixtures.stores import FaultyStore

READ_DATA = RoutePolicy(required_permission="read:data")


class UnreachableIdentityProvider(IdentityProvider):
    def get_user(self, user_id):
        raise ConnectionError("identity provider unreachable")


@pytest.fixture
def recorder(store, app_config):
    recorder = UsageRecorder(store)
    yield recorder
    recorder.shutdown(timeout=5)


@pytest.fixture
def pipeline(store, identity_service, recorder, app_config):
    return AuthorizationPipeline.from_store(store, identity_service, recorder, app_config)


@pytest.fixture
def owner(user_factory):
    return user_factory(authorized_subdomains=["acme"])


@pytest.fixture
def issued(api_key_service, owner):
    return api_key_service.issue_key(
        APIKeyCreate(name="ci", user_id=owner.user_id, permissions=["read:data"])
    )


def request_for(issued, host="acme.example.com", **extra_headers):
    headers = {"X-API-Key": issued.data.api_key, "X-API-Secret": issued.api_secret}
    headers.update(extra_headers)
    return AuthRequest.from_headers(headers, host=host)


class TestAccepted:
    """Requests that make it through every stage."""

    def test_authorize(self, pipeline, issued, owner):
        decision = pipeline.authorize(request_for(issued), READ_DATA)

        assert decision.allowed is True
        assert decision.identity.user_id == owner.user_id
        assert decision.identity.tenant == "acme"
        assert decision.to_response() == {
            "user_id": owner.user_id,
            "subdomain": "acme",
            "permissions": ["read:data"],
        }

    def test_usage_recorded(self, pipeline, recorder, store, issued):
        pipeline.authorize(request_for(issued), READ_DATA)
        recorder.flush(timeout=10)

        assert store.get_by_id("api_keys", issued.data.id).usage.total_requests == 1

    def test_header_names_case_insensitive(self, pipeline, issued):
        request = AuthRequest.from_headers(
            {"x-api-key": issued.data.api_key, "x-api-secret": issued.api_secret},
            host="acme.example.com",
        )
        assert pipeline.authorize(request, READ_DATA).allowed is True

    def test_host_header_used_when_no_host_given(self, pipeline, issued):
        request = AuthRequest.from_headers(
            {
                "X-API-Key": issued.data.api_key,
                "X-API-Secret": issued.api_secret,
                "Host": "ACME.example.com:443",
            }
        )
        assert pipeline.authorize(request, READ_DATA).identity.tenant == "ACME"

    def test_override_header_beats_host(self, pipeline, issued):
        request = request_for(issued, host="globex.example.com", **{"X-Client-Subdomain": "acme"})
        assert pipeline.authorize(request, READ_DATA).identity.tenant == "acme"

    def test_wildcard_permission(self, pipeline, api_key_service, owner):
        admin = api_key_service.issue_key(
            APIKeyCreate(name="admin", user_id=owner.user_id, permissions=["super:admin"])
        )
        policy = RoutePolicy(required_permission="delete:everything")

        assert pipeline.authorize(request_for(admin), policy).allowed is True

    def test_tenant_scope_disabled(self, pipeline, api_key_service):
        unbound = api_key_service.issue_key(APIKeyCreate(name="svc", permissions=["read:data"]))
        policy = RoutePolicy(required_permission="read:data", enforce_tenant_scope=False)

        decision = pipeline.authorize(request_for(unbound, host=None), policy)

        assert decision.allowed is True
        assert decision.identity.tenant is None

    def test_without_usage_recorder(self, store, identity_service, app_config, issued):
        pipeline = AuthorizationPipeline.from_store(store, identity_service, config=app_config)

        assert pipeline.authorize(request_for(issued), READ_DATA).allowed is True
        assert store.get_by_id("api_keys", issued.data.id).usage.total_requests == 0


class TestDenied:
    """Each stage's denial, in order."""

    @pytest.mark.parametrize(
        "headers",
        [
            {},
            {"X-API-Key": "ak_1"},
            {"X-API-Secret": "as_1"},
            {"X-API-Key": "  ", "X-API-Secret": "as_1"},
        ],
    )
    def test_missing_credentials(self, pipeline, headers):
        decision = pipeline.authorize(
            AuthRequest.from_headers(headers, host="acme.example.com"), READ_DATA
        )

        assert decision.allowed is False
        assert decision.reason == DenialReason.MISSING_CREDENTIALS
        assert decision.status_code == 400

    def test_unknown_key(self, pipeline, issued):
        request = AuthRequest.from_headers(
            {"X-API-Key": "ak_unknown", "X-API-Secret": issued.api_secret},
            host="acme.example.com",
        )
        decision = pipeline.authorize(request, READ_DATA)

        assert decision.reason == DenialReason.INVALID_KEY
        assert decision.status_code == 401

    def test_wrong_secret(self, pipeline, issued):
        request = AuthRequest.from_headers(
            {"X-API-Key": issued.data.api_key, "X-API-Secret": "as_wrong"},
            host="acme.example.com",
        )
        decision = pipeline.authorize(request, READ_DATA)

        assert decision.reason == DenialReason.INVALID_CREDENTIALS
        assert decision.status_code == 401

    def test_unknown_key_and_wrong_secret_look_the_same(self, pipeline, issued):
        unknown = pipeline.authorize(
            AuthRequest.from_headers(
                {"X-API-Key": "ak_unknown", "X-API-Secret": issued.api_secret},
                host="acme.example.com",
            ),
            READ_DATA,
        ).to_response()["error"]
        wrong = pipeline.authorize(
            AuthRequest.from_headers(
                {"X-API-Key": issued.data.api_key, "X-API-Secret": "as_wrong"},
                host="acme.example.com",
            ),
            READ_DATA,
        ).to_response()["error"]

        assert unknown["code"] == wrong["code"]
        assert unknown["message"] == wrong["message"]

    def test_inactive_key(self, pipeline, api_key_service, issued):
        api_key_service.set_status(issued.data.id, KeyStatus.INACTIVE)

        decision = pipeline.authorize(request_for(issued), READ_DATA)
        assert decision.reason == DenialReason.INVALID_CREDENTIALS

    def test_insufficient_permissions(self, pipeline, issued):
        decision = pipeline.authorize(
            request_for(issued), RoutePolicy(required_permission="read:admin")
        )

        assert decision.reason == DenialReason.INSUFFICIENT_PERMISSIONS
        assert decision.status_code == 403

    def test_permission_checked_before_tenant(self, pipeline, issued):
        decision = pipeline.authorize(
            request_for(issued, host="globex.example.com"),
            RoutePolicy(required_permission="read:admin"),
        )
        assert decision.reason == DenialReason.INSUFFICIENT_PERMISSIONS

    def test_missing_tenant(self, pipeline, issued):
        decision = pipeline.authorize(request_for(issued, host="localhost"), READ_DATA)

        assert decision.reason == DenialReason.MISSING_TENANT
        assert decision.status_code == 400

    def test_unbound_credential(self, pipeline, api_key_service):
        unbound = api_key_service.issue_key(APIKeyCreate(name="svc", permissions=["read:data"]))

        decision = pipeline.authorize(request_for(unbound), READ_DATA)
        assert decision.reason == DenialReason.UNBOUND_CREDENTIAL

    def test_tenant_not_allowed(self, pipeline, issued):
        decision = pipeline.authorize(request_for(issued, host="globex.example.com"), READ_DATA)

        assert decision.reason == DenialReason.TENANT_NOT_ALLOWED
        assert decision.status_code == 403

    def test_identity_lookup_failed(self, store, app_config, issued):
        broken_identity = IdentityService(FaultyStore(store).fail("find_one_by_field"))
        pipeline = AuthorizationPipeline.from_store(store, broken_identity, config=app_config)

        decision = pipeline.authorize(request_for(issued), READ_DATA)
        assert decision.reason == DenialReason.IDENTITY_LOOKUP_FAILED

    def test_transient_store_failure(self, store, identity_service, app_config, issued):
        pipeline = AuthorizationPipeline.from_store(
            FaultyStore(store).fail("find_one_by_field"), identity_service, config=app_config
        )

        decision = pipeline.authorize(request_for(issued), READ_DATA)

        assert decision.reason == DenialReason.TRANSIENT_FAILURE
        assert decision.status_code == 503
        assert decision.retryable is True

    def test_unreachable_identity_provider(self, store, app_config, issued):
        pipeline = AuthorizationPipeline.from_store(
            store, UnreachableIdentityProvider(), config=app_config
        )

        decision = pipeline.authorize(request_for(issued), READ_DATA)

        assert decision.allowed is False
        assert decision.reason == DenialReason.IDENTITY_LOOKUP_FAILED

    def test_store_raising_foreign_error(self, store, identity_service, app_config, issued):
        broken = FaultyStore(store).fail("find_one_by_field", OSError("socket closed"))
        pipeline = AuthorizationPipeline.from_store(broken, identity_service, config=app_config)

        decision = pipeline.authorize(request_for(issued), READ_DATA)

        assert decision.reason == DenialReason.TRANSIENT_FAILURE
        assert decision.retryable is True

    def test_denials_do_not_record_usage(self, pipeline, recorder, store, issued):
        pipeline.authorize(request_for(issued, host="globex.example.com"), READ_DATA)
        recorder.flush(timeout=10)

        assert store.get_by_id("api_keys", issued.data.id).usage.total_requests == 0


class TestAssignmentFlow:
    """Issue unbound, assign, reactivate, then use."""

    def test_assigned_key_needs_activation(self, pipeline, api_key_service, owner):
        issued = api_key_service.issue_key(APIKeyCreate(name="ci", permissions=["read:data"]))
        api_key_service.assign_key(owner.user_id, issued.data.api_key)

        assert pipeline.authorize(request_for(issued), READ_DATA).allowed is False

        api_key_service.set_status(issued.data.id, KeyStatus.ACTIVE)
        decision = pipeline.authorize(request_for(issued), READ_DATA)

        assert decision.allowed is True
        assert decision.identity.user_id == owner.user_id


class TestRequireAndContext:
    """Raising variants."""

    def test_require_returns_identity(self, pipeline, issued):
        assert pipeline.require(request_for(issued), READ_DATA).tenant == "acme"

    def test_require_raises(self, pipeline, issued):
        with pytest.raises(InsufficientPermissionsError):
            pipeline.require(request_for(issued), RoutePolicy(required_permission="read:admin"))

        with pytest.raises(MissingCredentialsError):
            pipeline.require(AuthRequest(), READ_DATA)

    def test_authenticated_binds_context(self, pipeline, issued, owner):
        with pipeline.authenticated(request_for(issued), READ_DATA) as identity:
            assert IdentityContext.get_current_identity() is identity
            assert TenantContext.get_current_tenant_id() == "acme"
            assert identity.user_id == owner.user_id

        assert IdentityContext.get_current_identity() is None
        assert TenantContext.get_current_tenant_id() is None

    def test_authenticated_denied_never_runs_block(self, pipeline, issued):
        ran = []
        with pytest.raises(TenantNotAllowedError):
            with pipeline.authenticated(request_for(issued, host="globex.example.com"), READ_DATA):
                ran.append(True)
        assert ran == []


class TestConcurrency:
    """One pipeline shared by many request threads."""

    def test_concurrent_requests_all_counted(self, pipeline, recorder, store, issued):
        request_count = 20
        decisions = []
        lock = threading.Lock()

        def serve():
            decision = pipeline.authorize(request_for(issued), READ_DATA)
            with lock:
                decisions.append(decision)

        threads = [threading.Thread(target=serve) for _ in range(request_count)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=60)

        assert recorder.flush(timeout=30) is True
        assert len(decisions) == request_count
        assert all(decision.allowed for decision in decisions)
        assert recorder.dropped == 0
        record = store.get_by_id("api_keys", issued.data.id)
        assert record.usage.total_requests == request_count
