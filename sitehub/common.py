"""Shared page model, text helpers and toast messages for the web UI."""

from __future__ import annotations

import dataclasses
import json
from dataclasses import dataclass, field
from typing import Any

from markupsafe import Markup

MSG_SUCCESS = "success"
MSG_ERROR = "error"

DEFAULT_FAVICON = "/public/folder.svg"


@dataclass
class User:
    """The authenticated user of a request."""

    username: str = ""
    email: str = ""
    user_id: str = ""
    display_name: str = ""
    profile_url: str = ""
    token: str = ""
    roles: list[str] = field(default_factory=list)


@dataclass
class NavItem:
    """An entry of the application navigation."""

    display_name: str
    icon: str
    url: str
    active: bool = False


@dataclass
class PageModel:
    """Data needed to render a page with the shared layout."""

    page_title: str
    favicon: str
    version: str
    user: User
    search: str
    navigation: list[NavItem]
    env: str = ""


AVAILABLE_APPS: tuple[NavItem, ...] = (
    NavItem("Bookmarks", '<i class="bi bi-bookmark-star"></i> ', "/bm"),
    NavItem("Documents", '<i class="bi bi-file-earmark-pdf"></i> ', "/mydms"),
    NavItem("Sites", '<i class="bi bi-diagram-2"></i> ', "/sites"),
)


def create_page_model(page_url, page_title, search, favicon, version, env, user) -> PageModel:
    """Build the page model, marking the navigation entry of ``page_url`` active."""
    navigation = []
    title = ""
    for app in AVAILABLE_APPS:
        active = app.url == page_url
        if active:
            title = app.display_name
        navigation.append(dataclasses.replace(app, active=active))
    return PageModel(
        page_title=page_title or title,
        favicon=favicon or DEFAULT_FAVICON,
        version=version,
        user=user,
        search=search,
        navigation=navigation,
        env=env,
    )


def htmx_indicator_node() -> Markup:
    """Return the markup of the htmx loading indicator."""
    return Markup(
        '<div id="indicator" class="htmx-indicator">'
        '<div class="spinner-border text-light" role="status">'
        '<span class="visually-hidden">Loading...</span>'
        "</div></div>"
    )


def ellipsis(entry: str, length: int, indicator: str) -> str:
    """Cut ``entry`` at ``length`` and append ``indicator`` when it was long enough."""
    if not entry:
        return ""
    if len(entry) < length:
        return entry
    return entry[:length] + indicator


def sub_string(entry: str, length: int) -> str:
    """Cut ``entry`` at ``length``."""
    if not entry:
        return ""
    if len(entry) < length:
        return entry
    return entry[:length]


def ensure_trailing_slash(entry: str) -> str:
    """Return ``entry`` ending with a slash."""
    return entry if entry.endswith("/") else entry + "/"


def class_cond(starter: str, conditional: str, condition: bool) -> str:
    """Join CSS classes, adding ``conditional`` only if ``condition`` holds."""
    classes = ["", starter]
    if condition:
        classes.append(conditional)
    return " ".join(classes)


@dataclass
class ToastMessage:
    """A toast notification sent to the browser as an event."""

    type: str = ""
    title: str = ""
    text: str = ""

    def to_dict(self) -> dict[str, Any]:
        content = {
            key: value
            for key, value in (("type", self.type), ("title", self.title), ("text", self.text))
            if value
        }
        return {"toastMessage": content}


_HTML_ESCAPES = {
    "<": "\\u003c",
    ">": "\\u003e",
    "&": "\\u0026",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}


def _plain(data: Any) -> Any:
    to_dict = getattr(data, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    if dataclasses.is_dataclass(data) and not isinstance(data, type):
        return dataclasses.asdict(data)
    raise TypeError(f"could not marshall data; {type(data).__name__} is not serializable")


def to_json(data: Any) -> str:
    """Serialize ``data`` to compact, HTML-safe JSON."""
    payload = json.dumps(data, separators=(",", ":"), ensure_ascii=False, default=_plain)
    return "".join(_HTML_ESCAPES.get(ch, ch) for ch in payload)


def _toast(title: str, message: str, msg_type: str) -> str:
    return to_json(ToastMessage(type=msg_type, title=title, text=message))


def success_toast(title: str, message: str) -> str:
    """Return the JSON of a success toast."""
    return _toast(title, message, MSG_SUCCESS)


def error_toast(title: str, message: str) -> str:
    """Return the JSON of an error toast."""
    return _toast(title, message, MSG_ERROR)