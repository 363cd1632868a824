"""
Platform Inference

Maps free text to a target platform with ordered keyword rules.
Used on first contact and to read the answer to the platform question.
"""
import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional


class Platform(str, Enum):
    """Target platforms. UNKNOWN means the text gave no platform cue."""
    WEB = "web"
    IOS = "ios"
    ANDROID = "android"
    IOS_ANDROID = "ios_android"
    UNKNOWN = "unknown"


IOS_CUE = re.compile(r"\b(ios|iphone|ipad|apple)\b")
ANDROID_CUE = re.compile(r"\bandroid\b")
WEB_CUE = re.compile(r"\b(web|website|saas|dashboard|landing page|next\.?js|browser|frontend)\b")
WEB_ANSWER_CUE = re.compile(r"\b(web|website|browser|saas)\b")
BOTH_CUE = re.compile(r"\b(both|ios and android|iphone and android|android and iphone)\b")


@dataclass(frozen=True)
class PlatformRule:
    name: str
    matches: Callable[[str], bool]
    platform: Platform


INFERENCE_RULES: List[PlatformRule] = [
    PlatformRule("ios+android", lambda t: bool(IOS_CUE.search(t) and ANDROID_CUE.search(t)), Platform.IOS_ANDROID),
    PlatformRule("ios", lambda t: bool(IOS_CUE.search(t)), Platform.IOS),
    PlatformRule("android", lambda t: bool(ANDROID_CUE.search(t)), Platform.ANDROID),
    PlatformRule("web", lambda t: bool(WEB_CUE.search(t)), Platform.WEB),
]

ANSWER_RULES: List[PlatformRule] = [
    PlatformRule("both", lambda t: bool(BOTH_CUE.search(t)), Platform.IOS_ANDROID),
    PlatformRule("web", lambda t: bool(WEB_ANSWER_CUE.search(t)), Platform.WEB),
    PlatformRule("ios", lambda t: bool(IOS_CUE.search(t)), Platform.IOS),
    PlatformRule("android", lambda t: bool(ANDROID_CUE.search(t)), Platform.ANDROID),
]

# platform -> (framework, language)
PLATFORM_STACKS = {
    Platform.WEB: ("nextjs", "javascript"),
    Platform.IOS_ANDROID: ("shared_mobile", "javascript"),
    Platform.IOS: ("swift", "swift"),
    Platform.ANDROID: ("kotlin", "kotlin"),
}

PLATFORM_QUESTION = "Is this a web app, an iPhone app, an Android app, or both iPhone and Android?"

ONE_LINER_LIMIT = 140


def _first_match(rules: List[PlatformRule], text: str) -> Platform:
    t = (text or "").lower()
    for rule in rules:
        if rule.matches(t):
            return rule.platform
    return Platform.UNKNOWN


def infer_platform(text: str) -> Platform:
    """
    Infer the platform from a first message.

    A bare "app" with no platform cue is UNKNOWN, which triggers the
    one-time clarification question.
    """
    return _first_match(INFERENCE_RULES, text)


def parse_platform_answer(text: str) -> Optional[Platform]:
    """Read an answer to the platform question; None if it names no platform."""
    platform = _first_match(ANSWER_RULES, text)
    return None if platform is Platform.UNKNOWN else platform


def resolve_platform_answer(text: str) -> Platform:
    """The question is asked once; an ambiguous answer falls back to web."""
    return parse_platform_answer(text) or Platform.WEB


def build_info_for(platform: Platform, app_name: str, request: str) -> dict:
    """Initial build info for a resolved platform."""
    if platform is Platform.UNKNOWN:
        raise ValueError("Cannot build info for an unknown platform")
    framework, language = PLATFORM_STACKS[platform]
    return {
        "platform": platform.value,
        "framework": framework,
        "language": language,
        "app_name": app_name,
        "one_liner": (request or "").strip()[:ONE_LINER_LIMIT] or "App build in progress.",
        "core_features": [],
    }
