import pytest

from sitehub.ellipsis import (
    MOBILE_ELLIPSIS,
    STD_ELLIPSIS,
    EllipsisValues,
    get_ellipsis_values,
    parse_viewport,
)


def test_parse_viewport():
    assert parse_viewport("1024:768") == (1024, 768)


@pytest.mark.parametrize("value", [None, "", "1024", "1:2:3", "a:b"])
def test_parse_viewport_invalid(value):
    assert parse_viewport(value) == (0, 0)


def test_parse_viewport_partial():
    assert parse_viewport("x:768") == (0, 768)
    assert parse_viewport("1024:y") == (1024, 0)


def test_no_cookie_uses_standard():
    assert get_ellipsis_values({}) == STD_ELLIPSIS


def test_mobile_width():
    assert get_ellipsis_values({"viewport": "390:844"}) == MOBILE_ELLIPSIS
    assert get_ellipsis_values({"viewport": "320:600"}) == MOBILE_ELLIPSIS


def test_desktop_width():
    assert get_ellipsis_values({"viewport": "391:844"}) == STD_ELLIPSIS
    assert get_ellipsis_values({"viewport": "1920:1080"}) == STD_ELLIPSIS


def test_zero_width_uses_standard():
    assert get_ellipsis_values({"viewport": "0:844"}) == STD_ELLIPSIS
    assert get_ellipsis_values({"viewport": "garbage"}) == STD_ELLIPSIS


def test_values_fixed_by_source():
    assert STD_ELLIPSIS == EllipsisValues(path_len=50, node_len=60, folder_len=50)
    assert MOBILE_ELLIPSIS == EllipsisValues(path_len=5, node_len=30, folder_len=20)
    assert MOBILE_ELLIPSIS.node_len < STD_ELLIPSIS.node_len