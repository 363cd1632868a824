"""
Tests for buildpilot/events.py and the events the orchestrator publishes.
"""
import json

from buildpilot.events import EventPublisher, EventType


async def _drain(stream):
    events = []
    async for raw in stream:
        events.append(json.loads(raw[len("data: "):]))
    return events


class TestEventPublisher:

    async def test_publish_reaches_subscriber(self, publisher):
        stream = publisher.subscribe("p1")
        connected = json.loads((await stream.__anext__())[len("data: "):])
        assert connected["event_type"] == "connected"
        assert publisher.subscriber_count("p1") == 1

        await publisher.publish("p1", EventType.GENERATING, "working", "t1", data={"n": 1})
        await publisher.close_all("p1")

        events = await _drain(stream)
        assert [e["event_type"] for e in events] == ["generating"]
        assert events[0]["data"] == {"n": 1}
        assert publisher.subscriber_count("p1") == 0

    async def test_publish_without_subscribers_is_noop(self, publisher):
        await publisher.publish("nobody", EventType.COMPLETE, "done", "t1")
        assert publisher.subscriber_count("nobody") == 0


class TestRunEvents:

    async def test_clarify_then_build_events(self, orchestrator, publisher):
        stream = publisher.subscribe("p1")
        await stream.__anext__()

        await orchestrator.run("p1", "Build me a recipe app")
        await orchestrator.run("p1", "web")
        await publisher.close_all("p1")

        types = [e["event_type"] for e in await _drain(stream)]
        assert types == [
            "run_started",
            "clarifying",
            "run_started",
            "build_info_set",
            "intent_classified",
            "memory_updated",
            "generating",
            "files_written",
            "complete",
        ]

    async def test_failure_publishes_error(self, orchestrator, publisher, llm, builder_error):
        llm.builder_outputs.append(builder_error)
        stream = publisher.subscribe("p1")
        await stream.__anext__()

        await orchestrator.run("p1", "Build a web app for recipes")
        await publisher.close_all("p1")

        types = [e["event_type"] for e in await _drain(stream)]
        assert types[-1] == "error"
        assert "files_written" not in types


class TestReplay:

    async def test_late_subscriber_gets_run_in_flight(self, publisher):
        await publisher.publish("p1", EventType.RUN_STARTED, "old", "t0")
        await publisher.publish("p1", EventType.COMPLETE, "old done", "t0")
        await publisher.publish("p1", EventType.RUN_STARTED, "start", "t1")
        await publisher.publish("p1", EventType.GENERATING, "working", "t1")

        stream = publisher.subscribe("p1", replay=True)
        await stream.__anext__()
        await publisher.publish("p1", EventType.COMPLETE, "done", "t1")
        await publisher.close_all("p1")

        events = await _drain(stream)
        assert [e["event_type"] for e in events] == ["run_started", "generating", "complete"]
        assert {e["turn_id"] for e in events} == {"t1"}

    async def test_finished_run_is_not_replayed(self, publisher):
        await publisher.publish("p1", EventType.RUN_STARTED, "start", "t1")
        await publisher.publish("p1", EventType.COMPLETE, "done", "t1")

        stream = publisher.subscribe("p1", replay=True)
        await stream.__anext__()
        await publisher.close_all("p1")

        assert await _drain(stream) == []

    async def test_forget_drops_replay_state(self, publisher):
        await publisher.publish("p1", EventType.RUN_STARTED, "start", "t1")
        await publisher.forget("p1")
        assert publisher.latest_run("p1") == []


class TestSlowSubscriber:

    async def test_full_queue_drops_events_but_still_closes(self):
        publisher = EventPublisher(queue_size=2)
        stream = publisher.subscribe("p1")
        await stream.__anext__()

        for i in range(5):
            await publisher.publish("p1", EventType.GENERATING, f"step {i}", "t1")
        await publisher.close_all("p1")

        events = await _drain(stream)
        assert len(events) == 1
        assert events[0]["message"] == "step 1"
        assert publisher.subscriber_count("p1") == 0
