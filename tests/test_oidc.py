import uuid

import pytest

from sitehub.errors import AppError, SecurityError, ValidationError
from sitehub.oidc import (
    OIDC_INITIATE_URL,
    IdTokenProvider,
    LoginClaims,
    OidcService,
    SecurityConfig,
    TokenVerifier,
    rand_token,
    validate,
)
from sitehub.store import MemoryRepository, UserSiteEntity

EMAIL = "user@example.com"


class FakeProvider(IdTokenProvider):
    def __init__(self, fail=False):
        self.fail = fail

    def auth_code_url(self, state):
        return f"https://provider.example.com/auth?state={state}"

    def get_id_token(self, code):
        if self.fail:
            raise RuntimeError("exchange failed")
        return "raw-" + code


class FakeVerifier(TokenVerifier):
    def __init__(self, claims=None, fail=False):
        self.claims = claims
        self.fail = fail
        self.seen = []

    def verify_token(self, raw_token):
        self.seen.append(raw_token)
        if self.fail:
            raise RuntimeError("bad signature")
        return self.claims


class FailingRepository(MemoryRepository):
    def get_sites_for_user(self, user):
        raise RuntimeError("db down")


def default_claims(picture="https://pics.example.com/me.jpg=s96"):
    return {
        "email": EMAIL,
        "email_verified": True,
        "name": "Some User",
        "picture": picture,
        "given_name": "Some",
        "family_name": "User",
        "locale": "en",
        "sub": "1234",
    }


def make_repo():
    return MemoryRepository(
        {
            EMAIL: [
                UserSiteEntity(name="A", user=EMAIL, url="http://a.example.com", perm_list="r,w"),
                UserSiteEntity(name="B", user=EMAIL, url="http://b.example.com", perm_list="r"),
            ]
        }
    )


def make_service(provider=None, verifier=None, repo=None, factory=None):
    issued = []

    def token_factory(issuer, secret, expiry, claims):
        issued.append((issuer, secret, expiry, claims))
        return "token"

    service = OidcService(
        provider or FakeProvider(),
        verifier or FakeVerifier(default_claims()),
        SecurityConfig(
            jwt_issuer="issuer",
            jwt_secret="secret",
            expiry=7,
            login_redirect="/sites",
        ),
        repo or make_repo(),
        factory or token_factory,
    )
    return service, issued


def test_prep_redirect_returns_local_hop_and_random_state():
    service, _ = make_service()
    url, state = service.prep_int_oidc_redirect()
    _, other = service.prep_int_oidc_redirect()
    assert url == "/oidc/redirect"
    assert str(uuid.UUID(state)) == state
    assert state != other


def test_rand_token_is_uuid():
    token = rand_token()
    assert str(uuid.UUID(token)) == token


def test_ext_redirect_uses_provider_url():
    service, _ = make_service()
    assert service.get_ext_oidc_redirect("abc") == "https://provider.example.com/auth?state=abc"


def test_ext_redirect_requires_state():
    service, _ = make_service()
    with pytest.raises(ValidationError):
        service.get_ext_oidc_redirect("")


@pytest.mark.parametrize(
    "state, oidc_state, oidc_code",
    [("", "s", "c"), ("s", "", "c"), ("s", "s", ""), ("s", "x", "c")],
)
def test_validate_rejects_bad_parameters(state, oidc_state, oidc_code):
    with pytest.raises(ValidationError):
        validate(state, oidc_state, oidc_code)


def test_validate_mismatch_message_names_both_states():
    with pytest.raises(ValidationError) as info:
        validate("s1", "s2", "c")
    assert "'s2'" in str(info.value) and "'s1'" in str(info.value)


def test_login_issues_token_and_redirects_to_configured_url():
    verifier = FakeVerifier(default_claims())
    service, issued = make_service(verifier=verifier)
    token, url = service.login_oidc("s", "s", "code")
    assert (token, url) == ("token", "/sites")
    assert verifier.seen == ["raw-code"]
    issuer, secret, expiry, claims = issued[0]
    assert (issuer, secret, expiry) == ("issuer", b"secret", 7)
    assert claims["type"] == "login.User"
    assert claims["username"] == EMAIL
    assert claims["surname"] == "User"
    assert claims["profile_url"] == "https://pics.example.com/me.jpg"
    assert claims["claims"] == ["A|http://a.example.com|r,w", "B|http://b.example.com|r"]


def test_login_without_size_param_clears_profile_url():
    service, issued = make_service(verifier=FakeVerifier(default_claims(picture="http://p")))
    service.login_oidc("s", "s", "code")
    assert issued[0][3]["profile_url"] == ""


def test_login_validates_parameters_first():
    service, issued = make_service()
    with pytest.raises(ValidationError):
        service.login_oidc("s", "other", "code")
    assert issued == []


def test_login_unknown_user_is_denied():
    service, _ = make_service(repo=MemoryRepository())
    with pytest.raises(SecurityError):
        service.login_oidc("s", "s", "code")


def test_login_repository_failure_is_security_error():
    service, _ = make_service(repo=FailingRepository())
    with pytest.raises(SecurityError):
        service.login_oidc("s", "s", "code")


def test_login_exchange_failure():
    service, _ = make_service(provider=FakeProvider(fail=True))
    with pytest.raises(AppError) as info:
        service.login_oidc("s", "s", "code")
    assert not isinstance(info.value, (ValidationError, SecurityError))
    assert "exchange failed" in str(info.value)


def test_login_verify_failure():
    service, _ = make_service(verifier=FakeVerifier(fail=True))
    with pytest.raises(AppError) as info:
        service.login_oidc("s", "s", "code")
    assert "bad signature" in str(info.value)


def test_login_token_creation_failure():
    def broken(issuer, secret, expiry, claims):
        raise RuntimeError("no key")

    service, _ = make_service(factory=broken)
    with pytest.raises(AppError) as info:
        service.login_oidc("s", "s", "code")
    assert "no key" in str(info.value)


def test_site_login_redirects_to_given_url():
    service, _ = make_service()
    token, url = service.login_site_oidc("s", "s", "code", "A", "http://a.example.com/start")
    assert (token, url) == ("token", "http://a.example.com/start")


def test_site_login_unknown_site_is_denied():
    service, _ = make_service()
    with pytest.raises(SecurityError):
        service.login_site_oidc("s", "s", "code", "C", "http://a.example.com/start")


def test_site_login_foreign_redirect_is_denied():
    service, _ = make_service()
    with pytest.raises(SecurityError):
        service.login_site_oidc("s", "s", "code", "A", "http://b.example.com/start")


@pytest.mark.parametrize("site, redirect", [("", "http://a.example.com"), ("A", "")])
def test_site_login_requires_site_and_redirect(site, redirect):
    service, _ = make_service()
    with pytest.raises(ValidationError):
        service.login_site_oidc("s", "s", "code", site, redirect)


def test_login_claims_from_dict():
    claims = LoginClaims.from_dict(default_claims())
    assert claims.email == EMAIL
    assert claims.email_verified is True
    assert claims.display_name == "Some User"
    assert claims.user_id == "1234"
    assert claims.family_name == "User"


def test_login_claims_from_dict_rejects_non_mapping():
    with pytest.raises(ValueError):
        LoginClaims.from_dict(["email"])


def test_prep_redirect_uses_initiate_url():
    service, _ = make_service()
    url, _ = service.prep_int_oidc_redirect()
    assert url == OIDC_INITIATE_URL