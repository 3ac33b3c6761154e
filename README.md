# sitehub

`sitehub` is a small library for a site-access service. It:

- runs the OpenID Connect login handshake. An optional "site login" flow checks that the user may use one site and then redirects to it,
- stores which sites each user may reach, and with which permissions, in SQLite or in memory,
- renders the HTML fragments that list a user's sites and let an administrator edit them as JSON.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Modules

| Module | Purpose |
| --- | --- |
| `sitehub.errors` | `NotFoundError`, `ValidationError` and `SecurityError`, all derived from `AppError` |
| `sitehub.store` | `UserSiteEntity` and the `Repository` interface, with the implementations `SqliteRepository` and `MemoryRepository` |
| `sitehub.sites` | `SiteService` and the data classes `UserSites`, `SiteInfo` and `UserList` |
| `sitehub.oidc` | `OidcService`, the `IdTokenProvider` and `TokenVerifier` interfaces, `OAuthConfig`, `SecurityConfig` and `LoginClaims` |
| `sitehub.api` | `OidcHandler`, a WSGI application for `/oidc/...`, plus `ProblemDetail`, `problem_for` and `encode_error` |
| `sitehub.pages` | HTML fragments for the sites overview and the sites editor |
| `sitehub.common` | `User`, `PageModel`, `create_page_model`, text helpers (`ellipsis`, `sub_string`, `ensure_trailing_slash`, `class_cond`), toast messages and `to_json` |
| `sitehub.ellipsis` | `get_ellipsis_values`, which picks text truncation lengths from the `viewport` cookie |

## Storing and reading sites

```python
from sitehub.store import SqliteRepository, UserSiteEntity

repo = SqliteRepository.open(":memory:")
repo.migrate()
repo.store_site_for_user([
    UserSiteEntity(name="site1", user="alice@example.com",
                   url="http://www.site.com", perm_list="role1;role2"),
])
print(repo.get_users_for_site("site1"))   # ['alice@example.com']
```

How the repositories behave:

- `store_site_for_user(sites)` first deletes every entry of the user named in the first entry. It then inserts the given entries. An empty list raises `ValueError`.
- Lookups by user and by site ignore letter case. `get_sites_for_user` returns the sites ordered by name.
- `in_unit_of_work(handle)` calls `handle(repo)`. If `handle` raises, every change made inside it is rolled back and the exception is raised again.
- `MemoryRepository(sites)` takes a mapping from user to entries. It behaves the same way as the SQLite repository.

## Reading and saving a user's sites

`SiteService(admin_role, repository)` works on a `sitehub.common.User`:

- `get_sites_for_user(user)` looks the sites up by `user.email`. It returns a `UserSites`, and each permission list is split at `,`. `editable` is true when the user holds the admin role.
- `get_users_for_site(site, user)` is allowed for admins only.
- `save_sites_for_user(sites, user)` is allowed for admins only. It replaces the user's sites within one unit of work.

These methods raise the following errors:

| Situation | Error |
| --- | --- |
| The user lacks the admin role | `SecurityError` |
| There are no sites to save | `ValidationError` |
| The repository fails | `AppError` |

`UserSites.to_dict()` and `UserSites.from_dict()` convert to and from this JSON form:

```json
{"user": "...", "editable": false, "userSites": [{"name": "...", "url": "...", "permissions": ["..."]}]}
```

## The OIDC login

`OidcService(provider, verifier, security, repository, token_factory)` needs these parts from you:

- `provider`: an `IdTokenProvider`. `auth_code_url(state)` returns the consent-page URL, and `get_id_token(code)` exchanges the code for the raw ID token.
- `verifier`: a `TokenVerifier`. `verify_token(raw_token)` returns the token's claims as a mapping.
- `token_factory(issuer, secret_bytes, expiry, claims) -> str`: signs the application token.

`login_oidc` and `login_site_oidc` work in these steps:

1. They check the state and code with `validate`.
2. They get and verify the ID token.
3. They look up the user's sites by e-mail. A user without any site gets a `SecurityError`.
4. A site login also checks that the user has the site and that the redirect URL starts with the site's URL.
5. They call the token factory with a claims dict. The dict's `claims` entry holds `name|url|permissions` for every site.

The result is `(token, url)`. The URL is `security.login_redirect`, or the requested URL for a site login.

```python
from sitehub.api import CookieSettings, OidcHandler
from sitehub.oidc import OidcService, SecurityConfig

service = OidcService(provider, verifier,
                      SecurityConfig(jwt_issuer="login", jwt_secret="secret",
                                     expiry=7, login_redirect="/sites"),
                      repo, token_factory)
app = OidcHandler(service, CookieSettings(prefix="core"),
                  jwt_cookie_name="login_token", jwt_expiry_days=7)
```

## The OIDC endpoints

`OidcHandler` is a WSGI application that answers these paths with GET:

| Path | What it does |
| --- | --- |
| `/oidc/start` | Sets a `state` cookie (60 s) and redirects to `/oidc/redirect` |
| `/oidc/redirect` | Redirects to the provider's consent page |
| `/oidc/signin` | Checks the state, sets the token cookie for `jwt_expiry_days` days and redirects |
| `/oidc/auth/flow?~site=...&~url=...` | Stores `site\|url` in an `auth_flow` cookie, then starts the login |

All redirects use status 307. The state and auth-flow cookies get the prefix from `CookieSettings`: with the prefix `core`, the state cookie is named `core_state`. The token cookie is not prefixed.

Errors are answered as `application/problem+json` with a `ProblemDetail` body:

| Error | Status |
| --- | --- |
| `ValidationError` | 400 |
| `SecurityError` | 403 |
| `NotFoundError` | 404 |
| anything else | 500 |

## Pages

The functions in `sitehub.pages` return `markupsafe.Markup`, and text is escaped. The overview functions are `site_content(user_sites)`, `site_navigation(search)` and `site_styles()`. The editor functions are `site_edit_content(payload, error)`, `site_edit_navigation(search)` and `site_edit_styles()`.

## What the package does not do

- It ships no command and no server. You host `OidcHandler` in a WSGI server of your choice.
- It has no HTTP handlers for the `/sites` pages. It only renders their fragments.
- It has no page layout, and it does not load configuration.
- It contains no OpenID Connect client and no JWT signing. The provider, the verifier and the token factory are supplied by the caller.