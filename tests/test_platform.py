"""
Tests for buildpilot/engine/platform.py
"""
import pytest

from buildpilot.engine.platform import (
    Platform,
    build_info_for,
    infer_platform,
    parse_platform_answer,
    resolve_platform_answer,
)


class TestInferPlatform:

    @pytest.mark.parametrize("text,expected", [
        ("Build an app for iPhone and Android", Platform.IOS_ANDROID),
        ("an ipad app for sketching", Platform.IOS),
        ("Android app for my gym", Platform.ANDROID),
        ("a SaaS dashboard for invoices", Platform.WEB),
        ("landing page for my bakery", Platform.WEB),
        ("Build me a recipe app", Platform.UNKNOWN),
        ("", Platform.UNKNOWN),
    ])
    def test_rules(self, text, expected):
        assert infer_platform(text) is expected

    def test_word_boundaries(self):
        """'pineapple' must not read as an Apple cue."""
        assert infer_platform("a pineapple delivery app") is Platform.UNKNOWN


class TestPlatformAnswer:

    @pytest.mark.parametrize("text,expected", [
        ("both", Platform.IOS_ANDROID),
        ("iOS and Android please", Platform.IOS_ANDROID),
        ("it's a web app", Platform.WEB),
        ("iphone", Platform.IOS),
        ("android only", Platform.ANDROID),
    ])
    def test_parse(self, text, expected):
        assert parse_platform_answer(text) is expected

    def test_unknown_answer_is_none(self):
        assert parse_platform_answer("no idea") is None

    def test_resolve_defaults_to_web(self):
        assert resolve_platform_answer("no idea") is Platform.WEB


class TestBuildInfoFor:

    @pytest.mark.parametrize("platform,framework,language", [
        (Platform.WEB, "nextjs", "javascript"),
        (Platform.IOS_ANDROID, "shared_mobile", "javascript"),
        (Platform.IOS, "swift", "swift"),
        (Platform.ANDROID, "kotlin", "kotlin"),
    ])
    def test_stack_is_derived(self, platform, framework, language):
        info = build_info_for(platform, "Recipes", "Build me a recipe app")
        assert info["framework"] == framework
        assert info["language"] == language
        assert info["platform"] == platform.value
        assert info["core_features"] == []

    def test_one_liner_truncated(self):
        info = build_info_for(Platform.WEB, "Recipes", "x" * 300)
        assert len(info["one_liner"]) == 140

    def test_unknown_platform_rejected(self):
        with pytest.raises(ValueError):
            build_info_for(Platform.UNKNOWN, "Recipes", "hi")
