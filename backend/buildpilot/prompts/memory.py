"""
Rolling Memory Prompt

Condenses a project thread into a short factual digest for later turns.
"""

MEMORY_SYSTEM = """You summarize BuildPilot project threads for future iterations.
Capture: app goal, chosen platform/stack, key decisions, current project state, and next open tasks.
Be factual. No fluff. Return plain text only, at most 12 short lines."""

MEMORY_PROMPT = """Previous digest (may be outdated):
{previous}

Thread:
{transcript}

Write the updated digest:"""
