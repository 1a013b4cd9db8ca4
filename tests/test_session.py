from __future__ import annotations

import pytest

from verdict.session import SessionStore, parse_set_cookie, parse_set_cookies

pytestmark = pytest.mark.unit


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("sid=abc; Path=/; HttpOnly", ("sid", "abc")),
        ("  token = x ", ("token", "x")),
        ("empty=", ("empty", "")),
        ("=nameless", None),
        ("garbage", None),
    ],
)
def test_parse_set_cookie(raw: str, expected: tuple[str, str] | None) -> None:
    assert parse_set_cookie(raw) == expected


def test_parse_set_cookies_skips_garbage() -> None:
    assert parse_set_cookies(["a=1", "junk", "b=2"]) == {"a": "1", "b": "2"}


def test_store_renders_cookie_header() -> None:
    store = SessionStore({"a": "1"})
    store.merge({"b": "2", "a": "3"})

    assert store.header_value() == "a=3; b=2"
    assert len(store) == 2
    assert "b" in store


def test_store_snapshot_is_a_copy() -> None:
    store = SessionStore()
    store.set("sid", "x")

    snapshot = store.snapshot()
    snapshot["sid"] = "tampered"

    assert store.get("sid") == "x"


def test_cleared_store_sends_no_header() -> None:
    store = SessionStore({"sid": "x"})
    store.clear()

    assert store.header_value() is None
    assert store.get("sid") is None
