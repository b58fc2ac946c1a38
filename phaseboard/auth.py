"""
Phaseboard
Identity & project-role authorization.

Provides:
    - IdentityProvider interface with two implementations:
        StaticIdentityProvider  — one configured profile (development / tests)
        JWTIdentityProvider     — HS256 bearer tokens (Authorization: Bearer ...)
    - init_auth(): before_request hook resolving g.current_profile
    - authorize_project(): member-role check (owner > editor > viewer)

Configuration:
    IDENTITY_PROVIDER  — "static" (default) or "jwt"
    STATIC_PROFILE_ID  — profile used by the static provider
    API_AUTH_ENABLED   — when false, anonymous requests pass and role
                         checks are skipped (development only)
"""

import abc
import logging

import jwt
from flask import current_app, g, request

from phaseboard.core.exceptions import AuthenticationError, PermissionDeniedError
from phaseboard.models import db
from phaseboard.models.project import Profile, role_satisfies
from phaseboard.services import jwt_service
from phaseboard.utils.errors import E, api_error

logger = logging.getLogger(__name__)


# ── Identity providers ───────────────────────────────────────────────────────


class IdentityProvider(abc.ABC):
    """Answers "who is making this request?" for the API layer."""

    name = "abstract"

    @abc.abstractmethod
    def current_user(self) -> Profile | None:
        """Profile behind the current request, or None when anonymous.

        Raises AuthenticationError when credentials are present but invalid.
        """

    @abc.abstractmethod
    def sign_in(self, profile: Profile) -> dict:
        """Start a session for *profile*; returns client-facing credentials."""

    @abc.abstractmethod
    def sign_out(self, token: str | None = None) -> bool:
        """End the session identified by *token* (or the current one).

        Returns False when the provider has no per-client session to end.
        """


class StaticIdentityProvider(IdentityProvider):
    """Every request is made by one configured profile.

    The profile is app-wide configuration, so signing in or out never
    changes it; other clients keep the same identity.
    """

    name = "static"

    def __init__(self, profile_id: int | None = None) -> None:
        self.profile_id = profile_id

    def current_user(self) -> Profile | None:
        if self.profile_id is None:
            return None
        return db.session.get(Profile, self.profile_id)

    def sign_in(self, profile: Profile) -> dict:
        if profile.id != self.profile_id:
            raise AuthenticationError("Static identity is fixed by STATIC_PROFILE_ID")
        return {"profile_id": profile.id, "token_type": "static"}

    def sign_out(self, token: str | None = None) -> bool:
        logger.info("Sign-out ignored by static identity profile=%s", self.profile_id)
        return False


class JWTIdentityProvider(IdentityProvider):
    """Bearer-token identity; tokens carry the profile id in ``sub``."""

    name = "jwt"

    @staticmethod
    def _bearer_token() -> str | None:
        header = request.headers.get("Authorization", "")
        if header.startswith("Bearer "):
            return header[7:].strip() or None
        return None

    def current_user(self) -> Profile | None:
        token = self._bearer_token()
        if not token:
            return None
        try:
            payload = jwt_service.decode_access_token(token)
            profile_id = int(payload["sub"])
        except jwt.ExpiredSignatureError:
            raise AuthenticationError("Token expired")
        except (jwt.InvalidTokenError, KeyError, ValueError):
            raise AuthenticationError("Invalid token")
        profile = db.session.get(Profile, profile_id)
        if profile is None:
            raise AuthenticationError("Unknown profile")
        return profile

    def sign_in(self, profile: Profile) -> dict:
        token = jwt_service.generate_access_token(profile.id, profile.email)
        logger.info("Access token issued profile=%s", profile.id)
        return {
            "access_token": token,
            "token_type": "Bearer",
            "expires_in": current_app.config.get(
                "JWT_ACCESS_EXPIRES", jwt_service.DEFAULT_ACCESS_EXPIRES,
            ),
        }

    def sign_out(self, token: str | None = None) -> bool:
        token = token or self._bearer_token()
        if not token:
            raise AuthenticationError("No token to sign out")
        try:
            payload = jwt_service.revoke_token(token)
        except jwt.InvalidTokenError:
            raise AuthenticationError("Invalid token")
        logger.info("Access token revoked profile=%s", payload.get("sub"))
        return True


def build_identity_provider(app) -> IdentityProvider:
    kind = (app.config.get("IDENTITY_PROVIDER") or "static").lower()
    if kind == "jwt":
        return JWTIdentityProvider()
    if kind == "static":
        return StaticIdentityProvider(app.config.get("STATIC_PROFILE_ID"))
    raise ValueError(f"Unknown IDENTITY_PROVIDER: {kind!r}")


def get_identity_provider() -> IdentityProvider:
    return current_app.extensions["identity_provider"]


def current_profile() -> Profile | None:
    return getattr(g, "current_profile", None)


# ── Authorization ────────────────────────────────────────────────────────────


def _is_auth_enabled() -> bool:
    value = current_app.config.get("API_AUTH_ENABLED", True)
    if isinstance(value, str):
        return value.lower() not in ("false", "0", "no", "off")
    return bool(value)


def authorize_project(project_id: int, minimum_role: str = "viewer") -> None:
    """
    Require the current profile to hold at least *minimum_role* in the project.

    Role hierarchy: owner > editor > viewer. Skipped when auth is disabled.
    """
    if not _is_auth_enabled():
        return
    from phaseboard.services.project_service import get_member_role

    profile = current_profile()
    if profile is None:
        raise AuthenticationError("Authentication required")
    role = get_member_role(project_id, profile.id)
    if not role_satisfies(role, minimum_role):
        logger.warning(
            "Access denied: profile=%s role=%s needs '%s' on project=%s %s",
            profile.id, role, minimum_role, project_id, request.path,
        )
        raise PermissionDeniedError(required_role=minimum_role)


# ── before_request hook installer ────────────────────────────────────────────


def init_auth(app):
    """
    Install the identity provider and the authentication hook.

    - Resolves g.current_profile for every /api/v1/* request
    - Skips health checks and CORS pre-flight requests
    """
    app.extensions["identity_provider"] = build_identity_provider(app)

    @app.before_request
    def _before_request_auth():
        g.current_profile = None
        g.profile_id = None
        if not request.path.startswith("/api/v1/"):
            return None
        if request.path == "/api/v1/health" or request.path.startswith("/api/v1/health/"):
            return None
        if request.method == "OPTIONS":
            return None

        try:
            g.current_profile = get_identity_provider().current_user()
        except AuthenticationError as exc:
            return api_error(E.UNAUTHENTICATED, str(exc))
        if g.current_profile is not None:
            g.profile_id = g.current_profile.id

        if g.current_profile is None and _is_auth_enabled():
            return api_error(E.UNAUTHENTICATED, "Authentication required")
        return None

    logger.info(
        "Auth middleware installed (provider=%s, enabled=%s)",
        app.extensions["identity_provider"].name, app.config.get("API_AUTH_ENABLED"),
    )
