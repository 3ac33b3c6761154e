"""Server-rendered HTML fragments for the sites pages."""

from __future__ import annotations

from typing import Iterable, Optional, Sequence, Tuple, Union

from markupsafe import Markup, escape

from sitehub.sites import UserSites

_Attr = Tuple[str, Optional[str]]
_Child = Union[str, Markup]

_EDIT_STYLES = """.right-action {
\t  position: absolute;
\t  right: 20px;
\t}"""

_EDIT_SCRIPT = """
try {
  document.querySelector('#btn_save_sites').addEventListener('click', (event) => {
    htmx.trigger('#btn_save_sites', 'saveApplications');
  });
} catch(error) {
  console.error(error);
}
"""


def _attrs(attrs: Iterable[_Attr]) -> str:
    return "".join(
        f" {name}" if value is None else f' {name}="{escape(value)}"' for name, value in attrs
    )


def _el(tag: str, attrs: Sequence[_Attr] = (), *children: _Child) -> Markup:
    """Render an element; plain string children are escaped."""
    return (
        Markup(f"<{tag}{_attrs(attrs)}>")
        + Markup("").join(children)
        + Markup(f"</{tag}>")
    )


def _indicator() -> Markup:
    return _el(
        "div",
        [("id", "request_indicator"), ("class", "request_indicator htmx-indicator")],
        _el(
            "div",
            [("class", "spinner-border text-light"), ("role", "status")],
            _el("span", [("class", "visually-hidden")], "Loading..."),
        ),
    )


def site_content(user_sites: UserSites) -> Markup:
    """Render the cards of the user's sites with their permissions."""
    cards = [
        _el(
            "div",
            [("class", "card application")],
            _el(
                "div",
                [("class", "card-body")],
                _el("h5", [("class", "card-title")], site.name),
                _el(
                    "p",
                    (),
                    *(
                        _el("span", [("class", "badge text-bg-info permission")], f"#{perm}")
                        for perm in site.perm
                    ),
                ),
                _el("span", [("class", "badge text-bg-light")], site.url),
            ),
        )
        for site in user_sites.sites
    ]
    return _el("div", [("class", "container-fluid")], _el("div", [("class", "row")], *cards))


def site_styles() -> Markup:
    """The sites page needs no extra styles."""
    return Markup("")


def site_navigation(search: str) -> Markup:
    """Render the navigation bar of the sites page."""
    return _el(
        "div",
        [("class", "application_name")],
        _el("div", (), "~ sites:"),
        _el(
            "span",
            [("class", "right-action")],
            _indicator(),
            _el(
                "a",
                [("href", "/sites/edit"), ("type", "button"), ("class", "btn btn-light")],
                _el("i", [("class", "bi bi-pen")]),
                " Edit",
            ),
        ),
    )


def site_edit_content(payload: str, error: str) -> Markup:
    """Render the JSON edit form, with an alert when ``error`` is set."""
    alert = (
        _el("div", [("class", "alert alert-danger"), ("role", "alert")], error)
        if error
        else Markup("")
    )
    return _el(
        "form",
        [
            ("name", "jsonForm"),
            ("hx-post", "/sites"),
            ("hx-trigger", "saveApplications from:document"),
            ("hx-swap", "outerHTML"),
        ],
        _el(
            "div",
            [("class", "")],
            alert,
            _el(
                "div",
                [("class", "form-floating")],
                # escaped text keeps the textarea intact; the browser shows the same value
                _el(
                    "textarea",
                    [
                        ("class", "form-control"),
                        ("id", "json-edit-area"),
                        ("style", "height: calc(100vh - 110px)"),
                        ("name", "payload"),
                    ],
                    payload,
                ),
            ),
        ),
    )


def site_edit_styles() -> Markup:
    """Styles of the sites edit page."""
    return _el("style", [("type", "text/css")], Markup(_EDIT_STYLES))


def site_edit_navigation(search: str) -> Markup:
    """Render the navigation bar of the sites edit page with cancel and save."""
    return _el(
        "div",
        [("class", "application_name")],
        _el("div", (), Markup("~ sites [edit]:")),
        _el(
            "span",
            [("class", "right-action")],
            _indicator(),
            _el(
                "a",
                [("href", "/sites"), ("type", "button"), ("class", "btn btn-secondary")],
                _el("i", [("class", "bi bi-x")]),
                " Cancel",
            ),
            Markup("&nbsp;"),
            _el(
                "button",
                [("type", "button"), ("id", "btn_save_sites"), ("class", "btn btn-success")],
                _el("i", [("class", "bi bi-save")]),
                " Save",
            ),
        ),
        _el("script", [("type", "text/javascript")], Markup(_EDIT_SCRIPT)),
    )