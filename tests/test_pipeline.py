import pytest

from petmind import CognitionSystem, ManualClock, create_cognition, persistence
from petmind.crystallizer import CORE_BEHAVIORS
from petmind.pipeline import OFFLINE_RESPONSES, offline_intent
from petmind.telemetry import TelemetryEvent


def feed_five_times(system, owner="ana"):
    return [system.submit_event(owner, {"action": "feed"}) for _ in range(5)]


def learned_loops(system):
    return [loop for loop_id, loop in system.loops.loops.items() if loop_id not in CORE_BEHAVIORS]


def test_repeated_feeding_crystallizes_one_loop(system):
    results = feed_five_times(system)

    first = results[0]
    assert first.symbols == ["action_feed"]
    assert first.novel
    pattern = system.patterns.get_pattern(first.pattern_id)
    assert all(r.pattern_id == first.pattern_id for r in results)
    assert pattern.strength == 1.0
    assert pattern.confidence > 0.5
    assert results[0].loop_id is None

    loops = learned_loops(system)
    assert len(loops) == 1
    loop = loops[0]
    assert all(r.loop_id == loop.id for r in results[1:])
    assert loop.success_count == 5
    assert loop.category == "feeding"

    matches = system.loops.resonate({"action": "feed"})
    assert matches[0].loop_id == loop.id
    assert matches[0].resonance > 0.6


def test_respond_triggers_learned_loop(system):
    feed_five_times(system)
    loop_id = learned_loops(system)[0].id

    response = system.respond("ana", "feed")

    assert response["loop"]["loop_id"] == loop_id
    assert response["action"] == "approach_food"
    assert response["animation"] == "eating"
    assert response["provider"] == "offline"
    assert response["text"] in OFFLINE_RESPONSES["feed"]
    assert system.loops.active_loops()[0].id == loop_id


def test_respond_without_loops_uses_defaults(system):
    response = system.respond("ana", "dance")
    assert response["loop"] is None
    assert response["action"] == "respond"
    assert response["animation"] == "idle"
    assert response["text"] in OFFLINE_RESPONSES["default"]


def test_response_provider_is_used_and_failures_fall_back(config, clock):
    calls = []

    def provider(owner_id, action, context):
        calls.append((owner_id, action, context["action"]))
        return "Purr from the cloud"

    system = CognitionSystem(config, clock=clock, response_provider=provider)
    response = system.respond("ana", "pet", prompt="good kitty")
    assert response["text"] == "Purr from the cloud"
    assert response["provider"] == "external"
    assert calls == [("ana", "pet", "pet")]

    def broken(owner_id, action, context):
        raise ConnectionError("provider offline")

    system = CognitionSystem(config, clock=clock, response_provider=broken)
    response = system.respond("ana", "pet")
    assert response["provider"] == "offline"
    assert response["text"] in OFFLINE_RESPONSES["pet"]


def test_offline_intent():
    assert offline_intent("Hello there") == "greeting"
    assert offline_intent("want food?") == "feed"
    assert offline_intent("let's PLAY") == "play"
    assert offline_intent("zzz") == "default"


def test_report_outcome_reinforces_and_records_skill(system):
    result = system.report_outcome("hunger_response", True)
    assert result["success_count"] == 11

    skill = system.memory.get_skill("feeding")
    assert skill.successes == 1
    procedural = system.query_memories({"kind": "procedural"})
    assert procedural[0]["content"] == {"loop_id": "hunger_response", "success": True}

    assert system.report_outcome("no_such_loop", False) is None


def test_text_and_perception_events(system):
    text = system.submit_event("ana", "Do you want to play?")
    assert "play" in text.symbols
    assert "excitement" in text.symbols

    perception = system.process_perception("ana", {
        "visual": {"objects": [{"type": "ball", "confidence": 0.8}]},
        "auditory": {"sounds": [{"type": "squeak", "amplitude": 0.5}]},
    })
    assert perception.symbols == ["visual_ball", "audio_squeak"]
    assert not perception.learned
    record = system.memory.get(perception.memory_id)
    assert record.source == "perception"


def test_first_novel_event_starts_an_exploration(system, clock):
    first = system.submit_event("ana", {"toy": "ball"})
    second = system.submit_event("ana", {"toy": "rope"})
    clock.advance(system.config.curiosity.cooldown)
    third = system.submit_event("ana", {"toy": "stick"})

    assert first.exploration_id is not None
    assert second.exploration_id is None
    assert third.exploration_id is not None


def test_queries_and_self_description(system):
    feed_five_times(system)
    system.submit_event("ben", {"action": "play"})

    recent = system.get_recent_memories("ana", 2)
    assert len(recent) == 2
    assert all(m["owner_id"] == "ana" for m in recent)

    found = system.query_memories({"query": "action_feed", "limit": 3})
    assert len(found) == 3
    assert found[0]["retrieval_count"] >= 1

    assert system.get_self_description("nobody") is None
    description = system.get_self_description("ana")
    assert description["name"] == "unnamed"
    assert description["personality"]["extraversion"] > 0.5

    named = system.set_name("ana", "Biscuit")
    assert named["name"] == "Biscuit"


def test_metrics_and_parameters(system):
    feed_five_times(system)
    metrics = system.get_metrics()

    assert metrics["memory"]["episodic"] == 5
    assert metrics["loops"]["crystallized"] == len(CORE_BEHAVIORS) + 1
    assert metrics["identity"]["owners"] == 1
    assert metrics["telemetry"][TelemetryEvent.LOOP_CRYSTALLIZED.value] >= 1
    assert set(metrics["state"]) == {
        "awareness", "coherence", "curiosity", "identity", "learning_rate", "memory_consolidation",
    }

    assert system.set_parameter("curiosity", 2.0)["curiosity"] == 1.0
    assert system.curiosity.curiosity_level == 1.0
    assert system.set_parameter("learning_rate", 0.3)["learning_rate"] == 0.3
    assert system.set_parameter("awareness", -1)["awareness"] == 0.0
    assert system.set_parameter("bogus", 1.0) is None


def test_maintenance_sweeps_run_without_failures(system, clock):
    feed_five_times(system)

    assert system.maintain() == []
    clock.advance(31.0)
    ran = system.maintain()

    assert {"cognition_tick", "symbol_decay", "pattern_decay", "loop_maintenance", "curiosity",
            "exploration_replay", "memory_maintenance", "reflection"} == set(ran)
    assert all(stats["failures"] == 0 for stats in system.scheduler.get_stats().values())
    assert system.memory.semantic
    assert "checkpoint" not in system.scheduler.tasks


def test_dispatcher_serializes_calls_on_consumer_thread(config, clock):
    with CognitionSystem(config, clock=clock) as system:
        system.start()
        assert system.running
        results = feed_five_times(system)
        future = system.dispatch("get_metrics")
        assert future.result(timeout=5)["memory"]["episodic"] == 5
        assert results[-1].loop_id is not None

        with pytest.raises(AttributeError):
            system.dispatch("no_such_command").result(timeout=5)

    assert not system.running


def test_state_survives_restart(persistent_config, clock):
    system = CognitionSystem(persistent_config, clock=clock)
    feed_five_times(system)
    system.set_name("ana", "Biscuit")
    loop_id = learned_loops(system)[0].id
    system.shutdown()

    restored = CognitionSystem(persistent_config, clock=ManualClock(start=5000.0))

    assert len(restored.memory.episodic) == 5
    assert restored.loops.get_loop(loop_id).success_count == 5
    assert restored.get_self_description("ana")["name"] == "Biscuit"
    assert restored.snapshot_path.exists()
    restored.shutdown()


def test_corrupt_snapshot_starts_fresh(persistent_config, clock, tmp_path):
    data_dir = tmp_path / "memories"
    data_dir.mkdir()
    (data_dir / persistent_config.snapshot_name).write_bytes(b"garbage")

    system = CognitionSystem(persistent_config, clock=clock)

    assert learned_loops(system) == []
    assert system.checkpoint()
    system.shutdown()


def test_same_seed_gives_same_responses():
    def run():
        system = create_cognition(clock=ManualClock(start=1000.0), seed=21, persist=False)
        feed_five_times(system)
        return [system.respond("ana", action) for action in ("feed", "play", "dance")]

    assert run() == run()


def test_malformed_event_fields_are_coerced(system, caplog):
    listed = system.submit_event("ana", {"action": ["feed", "play"]})
    assert set(listed.symbols) == {"action_feed", "action_play"}
    assert system.memory.get(listed.memory_id).action is None

    rated = system.submit_event("ana", {"action": "play", "importance": "high"})
    assert 0.0 <= system.memory.get(rated.memory_id).importance <= 1.0
    unbounded = system.submit_event("ana", {"action": "play", "importance": float("inf")})
    assert 0.0 <= system.memory.get(unbounded.memory_id).importance <= 1.0

    system.submit_event("ana", {"action": "feed", "entity": ["bob"], "tags": 5})
    system.submit_event("ana", {"action": "pet", "entity": 7, "emotion": {"mood": "happy"}})

    assert set(system.identity.models["ana"].relationships) == {"owner", "7"}
    assert "Dropping non-text 'action'" in caplog.text
    assert "Ignoring malformed importance 'high'" in caplog.text


def test_malformed_perception_is_skipped(system):
    result = system.process_perception("ana", {
        "visual": {"objects": ["ball", {"type": "bone", "confidence": "sure"}]},
        "auditory": ["bark"],
    })
    assert result.symbols == ["visual_bone"]

    empty = system.process_perception("ana", ["not", "a", "mapping"])
    assert empty.symbols[0].startswith("unique_")


def test_checkpoint_returns_when_memory_writes_fail(persistent_config, clock, monkeypatch):
    persistent_config.background_writes = True
    system = CognitionSystem(persistent_config, clock=clock)

    def explode(path, payload):
        raise RuntimeError("disk went away")

    monkeypatch.setattr(persistence, "_write_json", explode)
    system.submit_event("ana", {"action": "feed", "importance": 0.9})
    assert system.checkpoint() is False

    monkeypatch.undo()
    assert system.checkpoint() is True
    system.shutdown()


def test_many_distinct_events_stay_within_capacity(clock):
    system = create_cognition(
        clock=clock, seed=3, persist=False, curiosity__spike_chance=0.0,
        symbols__max_symbols=40, resonance__max_patterns=30, resonance__max_preferences=10,
    )
    for i in range(200):
        system.submit_event("ana", {"toy": f"thing_{i}", "colour": f"shade_{i}"})

    symbols = system.symbols
    assert len(symbols.symbol_space) <= 40
    assert set(symbols.activation) == set(symbols.symbol_space)
    assert all(a in symbols.symbol_space and b in symbols.symbol_space for a, b in symbols.bindings)

    profile = system.patterns.profiles["ana"]
    assert profile["patterns"] <= set(system.patterns.patterns)
    assert len(system.patterns.patterns) <= 30
    assert len(profile["preferences"]) <= 10
