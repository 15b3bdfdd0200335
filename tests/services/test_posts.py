from datetime import datetime, timezone

import pytest

from keygate.core.exceptions import UnknownTemplate
from keygate.services.posts.service import PostRenderer

NOW = datetime(2026, 3, 1, tzinfo=timezone.utc)


def test_announcement_layout():
    text = PostRenderer().render("announcement", "Server restarts at 5", "alice", NOW)
    assert text == (
        "<b>📢 Announcement</b>\n\n"
        "Server restarts at 5\n\n"
        "<i>Posted by alice · 2026-03-01</i>"
    )


def test_user_text_is_escaped():
    text = PostRenderer().render("announcement", "<script>&", "<b>eve</b>", NOW)
    assert "&lt;script&gt;&amp;" in text
    assert "&lt;b&gt;eve&lt;/b&gt;" in text


def test_override_and_unknown_placeholder():
    renderer = PostRenderer({"event": {"title": "Event {name}", "body": "{text}", "ignored": "x"}})
    text = renderer.render("event", "Friday", "bob", NOW)
    assert text == "<b>Event {name}</b>\n\nFriday"
    assert "event" in renderer.names()


def test_braces_in_user_text_are_not_formatted():
    text = PostRenderer().render("rules", "use {author} literally", "bob", NOW)
    assert "use {author} literally" in text


def test_unknown_template():
    with pytest.raises(UnknownTemplate):
        PostRenderer().render("missing", "x", "bob", NOW)
