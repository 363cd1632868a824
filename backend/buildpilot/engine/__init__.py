# Engine Modules
from .intent_router import IntentRouter, Intent, Action
from .platform import Platform, infer_platform, parse_platform_answer
from .orchestrator import BuildOrchestrator, BuildState, merge_core_features

__all__ = [
    "IntentRouter",
    "Intent",
    "Action",
    "Platform",
    "infer_platform",
    "parse_platform_answer",
    "BuildOrchestrator",
    "BuildState",
    "merge_core_features",
]
