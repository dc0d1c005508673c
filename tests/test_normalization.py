from focus_tracker.models import WindowIdentity
from focus_tracker.normalization import (
    normalize_identity,
    normalize_window_title,
    sanitize_field,
)


def test_sanitize_field_removes_column_breaks():
    assert sanitize_field(" a\tb\r\nc  d ") == "a b c d"
    assert sanitize_field(None) == ""


def test_browser_suffixes_are_removed():
    assert normalize_window_title("firefox", "Docs \u2014 Mozilla Firefox") == "Docs"
    assert normalize_window_title("Google-chrome", "Inbox - Google Chrome") == "Inbox"


def test_tab_counts_are_removed():
    assert (
        normalize_window_title("microsoft-edge", "News and 3 more pages - Microsoft Edge")
        == "News"
    )


def test_other_applications_keep_their_title():
    assert normalize_window_title("kitty", "vim - Google Chrome") == "vim - Google Chrome"


def test_normalize_identity():
    identity = normalize_identity(WindowIdentity(" kitty\n", "a\tb"))
    assert identity == WindowIdentity("kitty", "a b")
