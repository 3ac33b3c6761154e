from html.parser import HTMLParser

from sitehub.pages import (
    site_content,
    site_edit_content,
    site_edit_navigation,
    site_edit_styles,
    site_navigation,
    site_styles,
)
from sitehub.sites import SiteInfo, UserSites


class _Collector(HTMLParser):
    def __init__(self):
        super().__init__(convert_charrefs=True)
        self.stack = []
        self.balanced = True
        self.texts = {}
        self.start_tags = []

    def handle_starttag(self, tag, attrs):
        self.stack.append(tag)
        self.start_tags.append((tag, dict(attrs)))

    def handle_endtag(self, tag):
        if not self.stack or self.stack.pop() != tag:
            self.balanced = False

    def handle_data(self, data):
        if self.stack:
            self.texts.setdefault(self.stack[-1], []).append(data)


def parse(markup):
    collector = _Collector()
    collector.feed(str(markup))
    collector.close()
    return collector


def sample_sites():
    return UserSites(
        user="someone",
        editable=True,
        sites=[
            SiteInfo(name="A", url="http://urlA", perm=["read", "write"]),
            SiteInfo(name="<B>", url="http://urlB", perm=["admin"]),
        ],
    )


def test_site_content_renders_one_card_per_site():
    parsed = parse(site_content(sample_sites()))
    assert parsed.balanced
    assert not parsed.stack
    cards = [a for tag, a in parsed.start_tags if a.get("class") == "card application"]
    assert len(cards) == 2
    assert parsed.texts["h5"] == ["A", "<B>"]


def test_site_content_lists_permissions_and_urls():
    markup = str(site_content(sample_sites()))
    assert "#read" in markup
    assert "#write" in markup
    assert "#admin" in markup
    assert "http://urlB" in markup
    assert "<B>" not in markup


def test_site_content_without_sites():
    parsed = parse(site_content(UserSites()))
    assert parsed.balanced
    assert not [a for tag, a in parsed.start_tags if a.get("class") == "card application"]


def test_site_styles_is_empty():
    assert site_styles() == ""


def test_site_navigation_links_to_edit():
    parsed = parse(site_navigation(""))
    assert parsed.balanced
    links = [a for tag, a in parsed.start_tags if tag == "a"]
    assert links[0]["href"] == "/sites/edit"


def test_site_edit_content_round_trips_payload():
    payload = '{"user": "<x> & y"}'
    parsed = parse(site_edit_content(payload, ""))
    assert parsed.balanced
    assert "".join(parsed.texts["textarea"]) == payload
    assert not [a for tag, a in parsed.start_tags if a.get("role") == "alert"]


def test_site_edit_content_shows_error():
    parsed = parse(site_edit_content("{}", "bad <json>"))
    alerts = [a for tag, a in parsed.start_tags if a.get("role") == "alert"]
    assert len(alerts) == 1
    assert "bad <json>" in parsed.texts["div"]


def test_site_edit_content_form_posts_to_sites():
    parsed = parse(site_edit_content("{}", ""))
    form = parsed.start_tags[0]
    assert form[0] == "form"
    assert form[1]["hx-post"] == "/sites"
    assert form[1]["hx-trigger"] == "saveApplications from:document"


def test_site_edit_styles():
    markup = str(site_edit_styles())
    assert markup.startswith('<style type="text/css">')
    assert "position: absolute;" in markup
    assert markup.endswith("</style>")


def test_site_edit_navigation_has_save_and_script():
    parsed = parse(site_edit_navigation(""))
    assert parsed.balanced
    buttons = [a for tag, a in parsed.start_tags if tag == "button"]
    assert buttons[0]["id"] == "btn_save_sites"
    assert "saveApplications" in "".join(parsed.texts["script"])
    links = [a for tag, a in parsed.start_tags if tag == "a"]
    assert links[0]["href"] == "/sites"