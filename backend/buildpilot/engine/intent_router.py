"""
Intent Router

Classifies a user message into one of four intents and decides which
action the orchestrator takes. Purely lexical: no model call, so routing
is deterministic and testable.
"""
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class Intent(str, Enum):
    """User intent types."""
    IMAGE = "image"     # Mockup / wireframe request
    BUILD = "build"     # Write or scaffold project files
    CHANGE = "change"   # Edit an existing project
    CHAT = "chat"       # Conversation only


class Action(str, Enum):
    """What the orchestrator does with the turn."""
    IMAGE = "image"
    BUILD = "build"
    CHAT = "chat"


class IntentClassification(BaseModel):
    """Result of intent classification."""
    intent: Intent
    action: Action
    rule: Optional[str] = None
    promoted: bool = False


@dataclass(frozen=True)
class IntentRule:
    name: str
    matches: Callable[[str, str], bool]  # (lowered, original) -> bool
    intent: Intent


def _contains_any(*phrases: str) -> Callable[[str, str], bool]:
    return lambda t, _raw: any(p in t for p in phrases)


def _search(pattern: str) -> Callable[[str, str], bool]:
    compiled = re.compile(pattern)
    return lambda t, _raw: bool(compiled.search(t))


IMAGE_PHRASES = (
    "mockup", "mock up", "wireframe", "ui design", "ui mockup", "design image",
    "screen design", "dashboard ui", "create a ui", "ui image",
)

_STACK_MENTION = re.compile(
    r"\b(it is|it's)\s+(an?\s+)?app\b"
    r"|\b(ios|android|iphone|ipad|react\s*native|expo|next\.?js|web app|saas)\b"
)
_REQUIREMENT_VERB = re.compile(r"\b(use|support|include|should|must|need|with|add)\b")
_FILE_SIGNAL = re.compile(r"(\breadme\b|\bpackage\.json\b|\bapp\.js\b|\bindex\.html\b|\bsrc/|\.env\b|\bendpoint\b|\bapi key\b)")


def _spec_like(t: str, _raw: str) -> bool:
    """A platform/stack mention backed by at least two requirement verbs."""
    return bool(_STACK_MENTION.search(t)) and len(_REQUIREMENT_VERB.findall(t)) >= 2


def _pasted_code_fix(t: str, raw: str) -> bool:
    return "```" in raw and bool(re.search(r"\b(fix|update|change|modify|refactor)\b", t))


# Ordered; first match wins. Image preempts everything else.
INTENT_RULES: List[IntentRule] = [
    IntentRule("image_phrase", _contains_any(*IMAGE_PHRASES), Intent.IMAGE),

    IntentRule(
        "write_project_files",
        lambda t, _raw: bool(
            re.search(r"\b(write|save|store|persist|populate|update)\b", t)
            and re.search(r"\b(project\s+files?|file\s+tree|workspace\s+files?)\b", t)
        ),
        Intent.BUILD,
    ),
    IntentRule("option_one", _search(r"\b(option\s*1|option\s*one|go\s+with\s+option\s*1)\b"), Intent.BUILD),
    IntentRule("continue_ack", _search(r"\b(paths\s+created|created\s+the\s+paths|paths\s+done|go\s+ahead)\b"), Intent.BUILD),
    IntentRule(
        "build_verb",
        _contains_any(
            "build", "generate code", "write code", "set up", "implement",
            "update the app", "modify the app", "change the app",
            "create an app", "create a project",
        ),
        Intent.BUILD,
    ),
    IntentRule(
        "builder_phrasing",
        _contains_any("create a", "add a", "make this", "app that", "scaffold"),
        Intent.BUILD,
    ),
    IntentRule("file_signal", lambda t, _raw: bool(_FILE_SIGNAL.search(t)), Intent.BUILD),
    IntentRule("spec_like", _spec_like, Intent.BUILD),

    IntentRule(
        "edit_verb",
        _search(
            r"\b(update|change|modify|refactor|improve|fix|debug|repair|moderni[sz]e|redesign"
            r"|restyle|polish|cleanup|optimi[sz]e)\b"
        ),
        Intent.CHANGE,
    ),
    IntentRule(
        "make_ui",
        lambda t, _raw: bool(
            re.search(r"\bmake\b", t)
            and re.search(
                r"\b(ui|design|layout|styling|style|theme|colou?rs?|responsive|mobile|button"
                r"|header|footer|nav|sidebar)\b",
                t,
            )
        ),
        Intent.CHANGE,
    ),
    IntentRule("feature_verb", _search(r"\b(add|remove|implement|wire up|connect|integrate)\b"), Intent.CHANGE),
    IntentRule("pasted_code_fix", _pasted_code_fix, Intent.CHANGE),
]

_QUESTION_START = re.compile(
    r"^(what|why|how|when|where|who|which|can|could|does|do|is|are|should|would|will)\b"
)


def is_informational_question(text: str) -> bool:
    t = (text or "").strip().lower()
    return t.endswith("?") or bool(_QUESTION_START.match(t))


def classify_intent(text: str) -> tuple[Intent, Optional[str]]:
    """Lexical intent and the name of the rule that produced it."""
    t = (text or "").lower()
    for rule in INTENT_RULES:
        if rule.matches(t, text or ""):
            return rule.intent, rule.name
    return Intent.CHAT, None


class IntentRouter:
    """
    Intent router for choosing the action of a turn.

    Rules:
    - IMAGE always produces a mockup, built or not
    - BUILD and CHANGE write files
    - after the first build, anything else that is not a plain question
      is promoted to a change so edits land as files, never as prose
    """

    ACTIONS = {
        Intent.IMAGE: Action.IMAGE,
        Intent.BUILD: Action.BUILD,
        Intent.CHANGE: Action.BUILD,
        Intent.CHAT: Action.CHAT,
    }

    def classify(self, message: str, built: bool = False) -> IntentClassification:
        """
        Classify a message given the project's build state.

        Args:
            message: User's message
            built: Whether the project has at least one successful build

        Returns:
            IntentClassification with intent and action
        """
        intent, rule = classify_intent(message)

        if intent is Intent.CHAT and built and not is_informational_question(message):
            logger.debug("Promoting post-build message to a change request")
            return IntentClassification(
                intent=Intent.CHANGE,
                action=Action.BUILD,
                rule="post_build_promotion",
                promoted=True,
            )

        return IntentClassification(intent=intent, action=self.ACTIONS[intent], rule=rule)
