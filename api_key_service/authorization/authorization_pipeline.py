"""
The authorization pipeline: one request in, one decision out.

Stages run in order and the first denial wins:

1. header extraction (key and secret must both be present)
2. credential validation
3. permission evaluation against the route's required permission
4. tenant resolution and scoping, when the route enforces it
5. usage recording, detached from the request

The pipeline keeps no per-request state, so one instance serves all threads.
"""

from contextlib import contextmanager
from typing import Generator, Optional

from ..config import AppConfig, get_config
from ..context.identity_context import identity_context
from ..context.operation_context import OperationHandler
from ..exceptions import AuthorizationError, MissingCredentialsError
from ..repositories.credential_store import CredentialStore
from ..schemas.authorization_schemas import AuthorizationDecision, AuthRequest, RoutePolicy
from ..schemas.identity_schemas import IdentityBinding
from ..services.identity_service import IdentityProvider
from ..utils.hash_utils import SecretHasher
from ..utils.logger import get_logger
from .credential_validator import CredentialValidator
from .permission_evaluator import PermissionEvaluator
from .tenant_scope import TenantScopeResolver, resolve_tenant
from .usage_recorder import UsageRecorder


class AuthorizationPipeline:
    """Validates credentials and scopes them for one protected route at a time."""

    def __init__(
        self,
        validator: CredentialValidator,
        permission_evaluator: PermissionEvaluator,
        tenant_resolver: TenantScopeResolver,
        usage_recorder: Optional[UsageRecorder] = None,
        config: Optional[AppConfig] = None,
    ):
        self.validator = validator
        self.permission_evaluator = permission_evaluator
        self.tenant_resolver = tenant_resolver
        self.usage_recorder = usage_recorder
        self.config = config or get_config()
        self.logger = get_logger()

    @classmethod
    def from_store(
        cls,
        store: CredentialStore,
        identity_provider: IdentityProvider,
        usage_recorder: Optional[UsageRecorder] = None,
        config: Optional[AppConfig] = None,
    ) -> "AuthorizationPipeline":
        """Wire the default components around one store and identity provider."""
        config = config or get_config()
        return cls(
            validator=CredentialValidator(
                store, SecretHasher(config.security.bcrypt_rounds), config
            ),
            permission_evaluator=PermissionEvaluator(config.security.wildcard_permission),
            tenant_resolver=TenantScopeResolver(identity_provider),
            usage_recorder=usage_recorder,
            config=config,
        )

    def _evaluate(self, request: AuthRequest, policy: RoutePolicy) -> IdentityBinding:
        headers = self.config.headers

        api_key = request.header(headers.api_key)
        api_secret = request.header(headers.api_secret)
        if not api_key or not api_secret:
            raise MissingCredentialsError(
                key_present=bool(api_key), secret_present=bool(api_secret)
            )

        identity = self.validator.validate(api_key, api_secret)

        self.permission_evaluator.check(identity, policy.required_permission)

        if policy.enforce_tenant_scope:
            tenant = resolve_tenant(request.header(headers.tenant_override), request.host)
            identity = self.tenant_resolver.check(identity, tenant)

        if self.usage_recorder is not None:
            self.usage_recorder.record(identity.credential_id)

        return identity

    def authorize(self, request: AuthRequest, policy: RoutePolicy) -> AuthorizationDecision:
        """
        Run every stage and report the outcome.

        Denials are returned, not raised.

        Returns:
            An allowing decision carrying the identity binding, or a denying
            decision carrying the reason, HTTP status and public message
        """
        handler = OperationHandler(self.logger)
        try:
            with handler.operation(
                "authorization_pipeline.authorize",
                required_permission=policy.required_permission,
            ):
                identity = self._evaluate(request, policy)
        except AuthorizationError as e:
            return AuthorizationDecision.deny(e)

        self.logger.info(
            "Request authorized",
            extra={
                "credential_id": identity.credential_id,
                "user_id": identity.user_id,
                "tenant_id": identity.tenant,
                "required_permission": policy.required_permission,
            },
        )
        return AuthorizationDecision.allow(identity)

    def require(self, request: AuthRequest, policy: RoutePolicy) -> IdentityBinding:
        """
        Like authorize, but a denial is raised.

        Raises:
            AuthorizationError: The denial of the first failing stage
        """
        handler = OperationHandler(self.logger)
        with handler.operation(
            "authorization_pipeline.require",
            required_permission=policy.required_permission,
        ):
            return self._evaluate(request, policy)

    @contextmanager
    def authenticated(
        self, request: AuthRequest, policy: RoutePolicy
    ) -> Generator[IdentityBinding, None, None]:
        """
        Authorize the request and bind the identity (and tenant) for the block.

        Raises:
            AuthorizationError: If the request is denied; the block does not run
        """
        identity = self.require(request, policy)
        with identity_context(identity):
            yield identity
