"""
Tests for buildpilot/engine/sanitizer.py
"""
from buildpilot.engine.sanitizer import (
    CODE_OMITTED,
    looks_like_code,
    sanitize_assistant_message,
    sanitize_chat_reply,
)

FALLBACK = "Updated the project files."


class TestAssistantMessage:

    def test_plain_summary_kept(self):
        assert sanitize_assistant_message("  Added a search page.  ", FALLBACK) == "Added a search page."

    def test_fenced_block_rejected(self):
        text = "Done!\n```js\nx()\n```"
        assert sanitize_assistant_message(text, FALLBACK) == FALLBACK

    def test_file_header_rejected(self):
        text = "---- app/page.js ----\nsomething"
        assert sanitize_assistant_message(text, FALLBACK) == FALLBACK

    def test_code_like_lines_rejected(self):
        text = "import React from 'react'\nconst a = 1\nexport default a"
        assert sanitize_assistant_message(text, FALLBACK) == FALLBACK

    def test_two_code_like_lines_allowed(self):
        text = "Summary:\nimport the new module\nconst values were renamed"
        assert sanitize_assistant_message(text, FALLBACK) == text

    def test_too_long_rejected(self):
        assert sanitize_assistant_message("a" * 901, FALLBACK) == FALLBACK

    def test_empty_or_non_string(self):
        assert sanitize_assistant_message("", FALLBACK) == FALLBACK
        assert sanitize_assistant_message(None, FALLBACK) == FALLBACK


class TestChatReply:

    def test_fence_replaced_with_marker(self):
        reply = sanitize_chat_reply("Try this:\n```py\nprint(1)\n```\nThen rebuild.", FALLBACK)
        assert CODE_OMITTED in reply
        assert "print(1)" not in reply
        assert reply.endswith("Then rebuild.")

    def test_truncated_with_ellipsis(self):
        reply = sanitize_chat_reply("b" * 2000, FALLBACK, max_chars=100)
        assert reply == "b" * 100 + "…"

    def test_empty_uses_fallback(self):
        assert sanitize_chat_reply("  ", FALLBACK) == FALLBACK


def test_looks_like_code():
    assert looks_like_code("```x```")
    assert not looks_like_code("Added a header and a footer.")
