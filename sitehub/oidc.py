"""OpenID Connect login: validate the handshake, authorize the user and issue a token."""

from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from sitehub.errors import AppError, SecurityError, ValidationError
from sitehub.store import Repository, UserSiteEntity

OPENID_SCOPE: tuple[str, ...] = ("openid", "profile", "email")

# local hop which ensures that cookies are written for the local domain
OIDC_INITIATE_URL = "/oidc/redirect"
# routing path of the local hop below the /oidc mount point
OIDC_INITIATE_ROUTING_PATH = "/redirect"

ID_TOKEN_PARAM = "id_token"
TOKEN_TYPE = "login.User"


@dataclass
class OAuthConfig:
    """Settings of the external OpenID Connect provider."""

    client_id: str = ""
    client_secret: str = ""
    redirect_url: str = ""
    provider: str = ""
    end_point_url: str = ""


@dataclass
class SecurityConfig:
    """Settings used to issue and check the application token."""

    jwt_issuer: str = ""
    jwt_secret: str = ""
    cookie_name: str = ""
    expiry: int = 0
    claim_name: str = ""
    claim_url: str = ""
    claim_roles: list[str] = field(default_factory=list)
    cache_duration: str = ""
    login_redirect: str = ""


@dataclass
class LoginClaims:
    """Claims of a verified ID token."""

    email: str = ""
    email_verified: bool = False
    display_name: str = ""
    pic_url: str = ""
    given_name: str = ""
    family_name: str = ""
    locale: str = ""
    user_id: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> LoginClaims:
        """Read the standard OpenID claim names."""
        if not isinstance(data, Mapping):
            raise ValueError("the token claims must be a mapping")
        return cls(
            email=str(data.get("email") or ""),
            email_verified=bool(data.get("email_verified", False)),
            display_name=str(data.get("name") or ""),
            pic_url=str(data.get("picture") or ""),
            given_name=str(data.get("given_name") or ""),
            family_name=str(data.get("family_name") or ""),
            locale=str(data.get("locale") or ""),
            user_id=str(data.get("sub") or ""),
        )


class IdTokenProvider(ABC):
    """The OAuth 2.0 side of the provider: consent page and code exchange."""

    @abstractmethod
    def auth_code_url(self, state: str) -> str:
        """Return the URL of the provider's consent page."""

    @abstractmethod
    def get_id_token(self, code: str) -> str:
        """Exchange an authorization code for the raw ID token."""


class TokenVerifier(ABC):
    """Checks raw ID tokens issued by the provider."""

    @abstractmethod
    def verify_token(self, raw_token: str) -> Mapping[str, Any]:
        """Verify ``raw_token`` and return its claims."""


TokenFactory = Callable[[str, bytes, int, dict], str]


def validate(state: str, oidc_state: str, oidc_code: str) -> None:
    """Check the parameters returned by the OIDC handshake."""
    if not state:
        raise ValidationError("invalid/empty 'state' parameter supplied")
    if not oidc_state:
        raise ValidationError("invalid/empty 'oidcState' parameter supplied")
    if not oidc_code:
        raise ValidationError("invalid/empty 'oidcCode' parameter supplied")
    if state != oidc_state:
        raise ValidationError(
            f"the provided oidcState '{oidc_state}' does not match the initial state '{state}'"
        )


def rand_token() -> str:
    """Return a random state value."""
    return str(uuid.uuid4())


def _profile_url(pic_url: str) -> str:
    # the size parameter of the picture URL is dropped so the frontend may choose it
    sep = pic_url.find("=")
    return pic_url[:sep] if sep > 0 else ""


class OidcService:
    """Runs the OIDC login and issues application tokens."""

    def __init__(
        self,
        provider: IdTokenProvider,
        verifier: TokenVerifier,
        security: SecurityConfig,
        repository: Repository,
        token_factory: TokenFactory,
    ) -> None:
        self.provider = provider
        self.verifier = verifier
        self.security = security
        self.repository = repository
        self.token_factory = token_factory

    def prep_int_oidc_redirect(self) -> tuple[str, str]:
        """Return the internal hop URL and a fresh random state."""
        return OIDC_INITIATE_URL, rand_token()

    def get_ext_oidc_redirect(self, state: str) -> str:
        """Return the provider URL which starts the OIDC interaction."""
        if not state:
            raise ValidationError("invalid/empty state parameter supplied")
        return self.provider.auth_code_url(state)

    def login_oidc(self, state: str, oidc_state: str, oidc_code: str) -> tuple[str, str]:
        """Evaluate the handshake; return the token and the redirect URL."""
        validate(state, oidc_state, oidc_code)
        return self._perform_login(oidc_code, "", "")

    def login_site_oidc(
        self, state: str, oidc_state: str, oidc_code: str, site: str, redirect_url: str
    ) -> tuple[str, str]:
        """Log in, requiring access to ``site``; redirect to ``redirect_url``."""
        validate(state, oidc_state, oidc_code)
        if not site:
            raise ValidationError("empty 'site' parameter supplied")
        if not redirect_url:
            raise ValidationError("empty 'redirectURL' parameter supplied")
        return self._perform_login(oidc_code, site, redirect_url)

    def _perform_login(self, oidc_code: str, site: str, redirect_url: str) -> tuple[str, str]:
        site_login = bool(site)

        try:
            raw_id_token = self.provider.get_id_token(oidc_code)
        except Exception as exc:
            raise AppError(f"could not get the token, error in OIDC interaction: {exc}") from exc
        try:
            raw_claims = self.verifier.verify_token(raw_id_token)
        except Exception as exc:
            raise AppError(f"OIDC processing error, failed to verify ID Token: {exc}") from exc
        try:
            claims = LoginClaims.from_dict(raw_claims)
        except Exception as exc:
            raise AppError(f"could not get claims from token: {exc}") from exc

        # the user is known by the e-mail address throughout the system
        try:
            sites = self.repository.get_sites_for_user(claims.email)
        except Exception as exc:
            raise SecurityError(
                f"could not retrieve site-information for the given user '{claims.email}', {exc}"
            ) from exc
        if not sites:
            raise SecurityError(
                f"the given user '{claims.email}' is not allowed to access the system"
            )

        if site_login:
            self._check_site(sites, site, redirect_url, claims.email)

        token_claims = {
            "type": TOKEN_TYPE,
            "display_name": claims.display_name,
            "email": claims.email,
            "user_id": claims.user_id,
            "username": claims.email,
            "given_name": claims.given_name,
            "surname": claims.family_name,
            "profile_url": _profile_url(claims.pic_url),
            "claims": [f"{s.name}|{s.url}|{s.perm_list}" for s in sites],
        }
        try:
            token = self.token_factory(
                self.security.jwt_issuer,
                self.security.jwt_secret.encode(),
                self.security.expiry,
                token_claims,
            )
        except Exception as exc:
            raise AppError(f"could not create a JWT: {exc}") from exc

        url = redirect_url if site_login else self.security.login_redirect
        return token, url

    @staticmethod
    def _check_site(
        sites: list[UserSiteEntity], site: str, redirect_url: str, email: str
    ) -> None:
        match = next((s for s in sites if s.name == site), None)
        if match is None:
            raise SecurityError(f"user '{email}' is not allowed to login")
        if not redirect_url.startswith(match.url):
            raise SecurityError(
                f"the provided redirectURL '{redirect_url}' is not allowed for the given site"
            )