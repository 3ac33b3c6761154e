"""HTTP handlers for the OpenID Connect login flow and problem+json error responses."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Protocol

from werkzeug.exceptions import HTTPException
from werkzeug.routing import Map, Rule
from werkzeug.utils import redirect
from werkzeug.wrappers import Request, Response

from sitehub.errors import AppError, NotFoundError, SecurityError, ValidationError
from sitehub.oidc import OIDC_INITIATE_ROUTING_PATH

log = logging.getLogger(__name__)

OIDC_STATE_PARAM = "state"
OIDC_CODE_PARAM = "code"
STATE_COOKIE = "state"
SITE_PARAM = "~site"
REDIRECT_PARAM = "~url"
AUTH_FLOW_COOKIE = "auth_flow"
AUTH_FLOW_SEP = "|"
COOKIE_EXPIRY = 60

PROBLEM_TYPE = "about:blank"
PROBLEM_CONTENT_TYPE = "application/problem+json; charset=utf-8"

_SECONDS_PER_DAY = 24 * 60 * 60


@dataclass
class ProblemDetail:
    """An error description in the problem+json format."""

    type: str
    title: str
    status: int
    detail: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "title": self.title,
            "status": self.status,
            "detail": self.detail,
        }


def problem_for(error: BaseException) -> ProblemDetail:
    """Map an error to the problem detail sent to the client."""
    if isinstance(error, NotFoundError):
        title, status = "object cannot be found", 404
    elif isinstance(error, ValidationError):
        title, status = "error in parameter-validaton", 400
    elif isinstance(error, SecurityError):
        title, status = "security error", 403
    else:
        title, status = "cannot service the request", 500
    return ProblemDetail(type=PROBLEM_TYPE, title=title, status=status, detail=str(error))


def encode_error(error: BaseException) -> Response:
    """Return a problem+json response describing ``error``."""
    problem = problem_for(error)
    return Response(
        json.dumps(problem.to_dict()),
        status=problem.status,
        content_type=PROBLEM_CONTENT_TYPE,
    )


@dataclass
class CookieSettings:
    """Attributes of the cookies written by the handler."""

    path: str = "/"
    domain: str = ""
    secure: bool = False
    prefix: str = ""


class LoginService(Protocol):
    def prep_int_oidc_redirect(self) -> tuple[str, str]: ...

    def get_ext_oidc_redirect(self, state: str) -> str: ...

    def login_oidc(self, state: str, oidc_state: str, oidc_code: str) -> tuple[str, str]: ...

    def login_site_oidc(
        self, state: str, oidc_state: str, oidc_code: str, site: str, redirect_url: str
    ) -> tuple[str, str]: ...


class OidcHandler:
    """WSGI application serving the ``/oidc`` endpoints."""

    def __init__(
        self,
        service: LoginService,
        cookies: CookieSettings,
        jwt_cookie_name: str,
        jwt_expiry_days: int,
    ) -> None:
        self.service = service
        self.cookies = cookies
        self.jwt_cookie_name = jwt_cookie_name
        self.jwt_expiry_days = jwt_expiry_days
        self._routes: dict[str, Callable[[Request], Response]] = {
            "prep": self.handle_prep_redirect,
            "ext": self.handle_ext_redirect,
            "login": self.handle_login,
            "flow": self.handle_auth_flow,
        }
        self._map = Map(
            [
                Rule("/oidc/start", endpoint="prep", methods=["GET"]),
                Rule("/oidc" + OIDC_INITIATE_ROUTING_PATH, endpoint="ext", methods=["GET"]),
                Rule("/oidc/signin", endpoint="login", methods=["GET"]),
                Rule("/oidc/auth/flow", endpoint="flow", methods=["GET"]),
            ]
        )

    def __call__(self, environ: dict, start_response: Callable) -> Iterable[bytes]:
        response = self.dispatch(Request(environ))
        return response(environ, start_response)

    def dispatch(self, request: Request) -> Response:
        """Route ``request`` to its handler."""
        adapter = self._map.bind_to_environ(request.environ)
        try:
            endpoint, _ = adapter.match()
        except HTTPException as exc:
            return exc.get_response(request.environ)
        return self._routes[endpoint](request)

    # -- cookies ------------------------------------------------------------

    def _name(self, name: str) -> str:
        return f"{self.cookies.prefix}_{name}" if self.cookies.prefix else name

    def _get_cookie(self, request: Request, name: str) -> str:
        return request.cookies.get(self._name(name), "")

    def _set_cookie(
        self, response: Response, name: str, value: str, max_age: int, *, prefixed: bool = True
    ) -> None:
        response.set_cookie(
            self._name(name) if prefixed else name,
            value,
            max_age=max_age,
            path=self.cookies.path or "/",
            domain=self.cookies.domain or None,
            secure=self.cookies.secure,
            httponly=True,
            samesite="Lax",
        )

    def _delete_cookie(self, response: Response, name: str) -> None:
        response.delete_cookie(
            self._name(name),
            path=self.cookies.path or "/",
            domain=self.cookies.domain or None,
            secure=self.cookies.secure,
            httponly=True,
            samesite="Lax",
        )

    # -- handlers -----------------------------------------------------------

    def handle_prep_redirect(self, request: Request) -> Response:
        """Store a fresh state in a cookie and hop to the local redirect."""
        url, state = self.service.prep_int_oidc_redirect()
        response = redirect(url, code=307)
        self._set_cookie(response, STATE_COOKIE, state, COOKIE_EXPIRY)
        log.debug("begin with state %s (cookie %s)", state, STATE_COOKIE)
        return response

    def handle_ext_redirect(self, request: Request) -> Response:
        """Start the OIDC interaction at the external provider."""
        state = self._get_cookie(request, STATE_COOKIE)
        log.debug("retrieve state cookie %s: %s", STATE_COOKIE, state)
        if not state:
            return encode_error(ValidationError("missing 'state' cookie-value"))
        try:
            url = self.service.get_ext_oidc_redirect(state)
        except Exception as exc:
            return encode_error(exc)
        return redirect(url, code=307)

    def handle_login(self, request: Request) -> Response:
        """Finish the OIDC handshake, set the token cookie and redirect."""
        expiry_seconds = self.jwt_expiry_days * _SECONDS_PER_DAY

        state = self._get_cookie(request, STATE_COOKIE)
        if not state:
            return encode_error(ValidationError("missing 'state' cookie-value"))
        oidc_state = request.args.get(OIDC_STATE_PARAM, "")
        oidc_code = request.args.get(OIDC_CODE_PARAM, "")
        log.debug("got OIDC params state=%s code=%s", oidc_state, oidc_code)

        flow = self._get_cookie(request, AUTH_FLOW_COOKIE)
        site_parts: list[str] | None = None
        if flow:
            site_parts = flow.split(AUTH_FLOW_SEP)
            if len(site_parts) != 2:
                return encode_error(
                    ValidationError("invalid parameters to perform an auth-flow")
                )

        try:
            if site_parts is not None:
                site, redirect_url = site_parts
                log.info("perform site login for site %s, url %s", site, redirect_url)
                token, url = self.service.login_site_oidc(
                    state, oidc_state, oidc_code, site, redirect_url
                )
            else:
                token, url = self.service.login_oidc(state, oidc_state, oidc_code)
        except Exception as exc:
            response = encode_error(exc)
        else:
            if not token:
                log.warning("no error, but empty token")
                response = encode_error(AppError("a token could not be created"))
            else:
                response = redirect(url, code=307)
                self._delete_cookie(response, STATE_COOKIE)
                self._set_cookie(
                    response, self.jwt_cookie_name, token, expiry_seconds, prefixed=False
                )
                log.debug(
                    "set jwt cookie %s, expiry %d sec", self.jwt_cookie_name, expiry_seconds
                )

        if site_parts is not None:
            self._delete_cookie(response, AUTH_FLOW_COOKIE)
        return response

    def handle_auth_flow(self, request: Request) -> Response:
        """Remember site and target URL, then start the OIDC login."""
        site = request.args.get(SITE_PARAM, "")
        target = request.args.get(REDIRECT_PARAM, "")
        if not site or not target:
            log.warning("either '%s' or '%s' param are missing!", SITE_PARAM, REDIRECT_PARAM)
            return encode_error(ValidationError("missing parameters for auth-flow/site-login"))

        url, state = self.service.prep_int_oidc_redirect()
        response = redirect(url, code=307)
        self._set_cookie(
            response, AUTH_FLOW_COOKIE, f"{site}{AUTH_FLOW_SEP}{target}", COOKIE_EXPIRY
        )
        log.debug("auth-flow data saved in cookie: site=%s url=%s", site, target)
        self._set_cookie(response, STATE_COOKIE, state, COOKIE_EXPIRY)
        log.debug("begin with state %s (cookie %s)", state, STATE_COOKIE)
        return response