"""
Response Sanitizer

The chat surface carries narration only. Code belongs in project files,
so assistant text is checked before it is stored or returned.
"""
import re

FENCED_BLOCK = re.compile(r"```[\s\S]*?```")
FILE_HEADER = re.compile(r"^-{3,}\s+.+\s+-{3,}", re.MULTILINE)
CODE_LIKE_LINE = re.compile(
    r"^\s*(import\s+|export\s+|const\s+|function\s+|class\s+|<\w+|[{}]\s*$)",
    re.MULTILINE,
)

CODE_OMITTED = "[Code omitted — changes are applied via project files]"

SUMMARY_MAX_CHARS = 900
CHAT_REPLY_MAX_CHARS = 1400


def looks_like_code(text: str) -> bool:
    """True when text carries a fence, a file header, or 3+ code-like lines."""
    return (
        "```" in text
        or bool(FILE_HEADER.search(text))
        or len(CODE_LIKE_LINE.findall(text)) >= 3
    )


def sanitize_assistant_message(text, fallback: str, max_chars: int = SUMMARY_MAX_CHARS) -> str:
    """
    Clean a build summary.

    Anything code-like or longer than max_chars is replaced by the fallback
    outright.
    """
    t = text.strip() if isinstance(text, str) else ""
    if not t:
        return fallback
    if looks_like_code(t) or len(t) > max_chars:
        return fallback
    return FENCED_BLOCK.sub("", t).strip() or fallback


def sanitize_chat_reply(text, fallback: str, max_chars: int = CHAT_REPLY_MAX_CHARS) -> str:
    """
    Clean a conversational reply.

    Fenced code is replaced with a marker instead of rejecting the reply;
    the result is truncated to max_chars with an ellipsis.
    """
    t = text.strip() if isinstance(text, str) else ""
    if not t:
        return fallback
    cleaned = FENCED_BLOCK.sub(CODE_OMITTED, t).strip()
    if len(cleaned) > max_chars:
        return cleaned[:max_chars] + "…"
    return cleaned or fallback
