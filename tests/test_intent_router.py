"""
Tests for buildpilot/engine/intent_router.py
"""
import pytest

from buildpilot.engine.intent_router import (
    Action,
    Intent,
    IntentRouter,
    classify_intent,
    is_informational_question,
)


@pytest.fixture
def router():
    return IntentRouter()


class TestClassifyIntent:

    @pytest.mark.parametrize("text", [
        "show me a dashboard ui mockup",
        "Can you make a wireframe for onboarding?",
        "I need a UI design for the settings page",
    ])
    def test_image(self, text):
        assert classify_intent(text)[0] is Intent.IMAGE

    def test_image_preempts_build(self):
        intent, rule = classify_intent("build a mockup of the checkout")
        assert intent is Intent.IMAGE
        assert rule == "image_phrase"

    @pytest.mark.parametrize("text,rule", [
        ("Build me a recipe app", "build_verb"),
        ("please implement login", "build_verb"),
        ("go with option 1", "option_one"),
        ("write the project files now", "write_project_files"),
        ("scaffold the backend", "builder_phrasing"),
        ("put the API key in .env", "file_signal"),
        ("it's an app with users, should support login and must include search", "spec_like"),
    ])
    def test_build(self, text, rule):
        assert classify_intent(text) == (Intent.BUILD, rule)

    @pytest.mark.parametrize("text", [
        "fix the header styling",
        "refactor the store logic",
        "make the layout responsive",
        "remove the footer",
    ])
    def test_change(self, text):
        assert classify_intent(text)[0] is Intent.CHANGE

    def test_pasted_code_with_fix(self):
        text = "```\nconst x = 1\n```\nthis throws, fix it"
        assert classify_intent(text)[0] is Intent.CHANGE

    def test_chat_fallback(self):
        assert classify_intent("thanks, that sounds good") == (Intent.CHAT, None)


class TestIntentRouter:

    def test_change_maps_to_build_action(self, router):
        result = router.classify("fix the header styling", built=False)
        assert result.intent is Intent.CHANGE
        assert result.action is Action.BUILD
        assert not result.promoted

    def test_chat_before_build_stays_chat(self, router):
        result = router.classify("thanks, that sounds good", built=False)
        assert result.action is Action.CHAT

    def test_chat_after_build_is_promoted(self, router):
        result = router.classify("the buttons feel too small", built=True)
        assert result.intent is Intent.CHANGE
        assert result.action is Action.BUILD
        assert result.promoted
        assert result.rule == "post_build_promotion"

    def test_question_after_build_stays_chat(self, router):
        result = router.classify("What does the home page show?", built=True)
        assert result.action is Action.CHAT

    def test_image_after_build_stays_image(self, router):
        result = router.classify("dashboard ui for the admin area", built=True)
        assert result.action is Action.IMAGE


class TestInformationalQuestion:

    @pytest.mark.parametrize("text,expected", [
        ("how does routing work", True),
        ("is this deployed?", True),
        ("colors are off", False),
    ])
    def test_detection(self, text, expected):
        assert is_informational_question(text) is expected
