import pytest

from petmind.config import CrystallizerConfig
from petmind.crystallizer import (
    CORE_BEHAVIORS,
    BehaviorCrystallizer,
    BehaviorLoop,
    LoopState,
    infer_category,
    infer_emotion,
)
from petmind.resonance import Pattern
from petmind.runtime import ManualClock, make_rng


def make_crystallizer(clock=None, **overrides):
    return BehaviorCrystallizer(CrystallizerConfig(**overrides), rng=make_rng(3),
                                clock=clock or ManualClock(start=100.0))


def strong_pattern(template, instances=2, strength=0.9):
    pattern = Pattern(id="pattern_x", template=set(template), strength=strength)
    for _ in range(instances):
        pattern.instances.append(frozenset(template))
    return pattern


def test_core_behaviors_are_seeded():
    crystallizer = make_crystallizer()
    assert set(CORE_BEHAVIORS) <= set(crystallizer.loops)
    greeting = crystallizer.loops["friendly_greeting"]
    assert greeting.strength == 0.9
    assert greeting.success_count == 10
    assert greeting.category == "greeting"


def test_categories_and_emotions():
    assert infer_category(["action_feed"]) == "feeding"
    assert infer_category(["toy_ball"]) == "playing"
    assert infer_category(["qwerty"]) == "general"
    assert infer_emotion(["excitement", "approach"]) == "excited"
    assert infer_emotion(["curl_up", "relax"]) == "content"


def test_consider_requires_resonance_strength_and_instances():
    crystallizer = make_crystallizer()
    assert crystallizer.consider("p", strong_pattern(["action_feed"]), 0.4) is None
    assert crystallizer.consider("p", strong_pattern(["action_feed"], instances=1), 0.9) is None
    assert "p" in crystallizer.candidates
    assert crystallizer.consider("p", strong_pattern(["action_feed"], strength=0.6), 0.9) is None

    loop_id = crystallizer.consider("p", strong_pattern(["action_feed"]), 0.5)
    loop = crystallizer.loops[loop_id]
    assert loop.trigger_features == ["action_feed"]
    assert loop.category == "feeding"
    assert loop.response_features == ["approach_food", "eat", "satisfaction"]
    assert loop.success_count == 2
    assert loop.strength == 0.8


def test_same_signature_reinforces_instead_of_duplicating():
    crystallizer = make_crystallizer()
    before = len(crystallizer.loops)
    first = crystallizer.crystallize(strong_pattern(["action_feed"]))
    again = crystallizer.crystallize(strong_pattern(["action_feed"], instances=4))

    assert again == first
    assert len(crystallizer.loops) == before + 1
    assert crystallizer.loops[first].success_count == 3
    assert crystallizer.loops[first].strength == pytest.approx(0.9)


def test_resonate_ranks_matching_loops():
    crystallizer = make_crystallizer()
    matches = crystallizer.resonate({"features": ["hunger", "see_food", "feeding_time"]})
    assert matches[0].loop_id == "hunger_response"
    assert matches[0].resonance == pytest.approx(0.9)
    assert crystallizer.resonate({"action": "nothing"}) == []


def test_context_only_counts_when_both_sides_have_it():
    crystallizer = make_crystallizer(seed_core_behaviors=False)
    loop_id = crystallizer.crystallize(strong_pattern(["action_feed"]), context={"room": "kitchen"})
    crystallizer.loops[loop_id].strength = 1.0

    plain = crystallizer.resonate({"action": "feed"})[0].resonance
    same_room = crystallizer.resonate({"action": "feed", "context": {"room": "kitchen"}})[0].resonance
    other_room = crystallizer.resonate({"action": "feed", "context": {"room": "garden"}})

    assert plain == 1.0
    assert same_room == 1.0
    assert other_room[0].resonance == pytest.approx(0.75)


def test_recently_triggered_loops_get_a_boost():
    clock = ManualClock(start=100.0)
    crystallizer = make_crystallizer(clock, seed_core_behaviors=False)
    loop_id = crystallizer.crystallize(strong_pattern(["a", "b", "action_feed"]))
    crystallizer.loops[loop_id].strength = 0.7

    before = crystallizer.resonate({"features": ["a", "b", "action_feed"]})[0].resonance
    crystallizer.trigger(loop_id)
    after = crystallizer.resonate({"features": ["a", "b", "action_feed"]})[0].resonance

    assert before == pytest.approx(0.7)
    assert after == pytest.approx(0.77)


def test_trigger_builds_response_and_bounds_active_set():
    crystallizer = make_crystallizer(max_active_loops=2)
    response = crystallizer.trigger("hunger_response")

    assert response["action"] == "approach_food"
    assert response["sequence"] == ["approach_food", "eat", "satisfaction"]
    assert response["confidence"] == "high"
    assert 0.0 <= response["variation"] < 0.1

    crystallizer.trigger("play_initiation")
    crystallizer.trigger("comfort_seeking")
    assert [l.id for l in crystallizer.active_loops()] == ["play_initiation", "comfort_seeking"]
    assert crystallizer.loops["hunger_response"].state == LoopState.DORMANT
    assert crystallizer.trigger("no_such_loop") is None


def test_weak_loop_response_has_low_confidence():
    crystallizer = make_crystallizer()
    crystallizer.loops["rest_loop"] = BehaviorLoop(id="rest_loop", trigger_features=["tired"],
                                                   response_features=[], strength=0.3)
    response = crystallizer.trigger("rest_loop")
    assert response["confidence"] == "low"
    assert response["action"] == "default_response"
    assert 0.0 <= response["variation"] < 0.3


def test_reinforce_success_and_failure():
    crystallizer = make_crystallizer()
    loop = crystallizer.reinforce("hunger_response", True)
    assert loop.success_count == 11
    assert loop.strength == pytest.approx(1.0)

    for _ in range(30):
        crystallizer.reinforce("hunger_response", False)
    assert loop.failure_count == 30
    assert loop.strength == 0.1
    assert crystallizer.reinforce("missing", True) is None


def test_merge_replaces_both_loops():
    crystallizer = make_crystallizer()
    merged_id = crystallizer.merge("hunger_response", "play_initiation")
    merged = crystallizer.loops[merged_id]

    assert "hunger_response" not in crystallizer.loops
    assert "play_initiation" not in crystallizer.loops
    assert merged.success_count == 20
    assert merged.strength == pytest.approx(0.9)
    assert "see_toy" in merged.trigger_features
    assert crystallizer.merge(merged_id, merged_id) is None


def test_decay_removes_weak_loops_and_expires_idle_active_ones():
    clock = ManualClock(start=100.0)
    crystallizer = make_crystallizer(clock, decay_rate=0.5, removal_floor=0.3)
    crystallizer.trigger("hunger_response")

    removed = crystallizer.decay()
    assert removed == 0
    assert crystallizer.loops["play_initiation"].strength == pytest.approx(0.45)
    assert crystallizer.loops["hunger_response"].strength == 0.9

    removed = crystallizer.decay()
    assert removed == 4
    assert set(crystallizer.loops) == {"hunger_response"}

    clock.advance(31)
    crystallizer.decay()
    assert crystallizer.active_loops() == []
    assert crystallizer.loops["hunger_response"].state == LoopState.DORMANT


def test_relevant_loop_and_category_lookup():
    crystallizer = make_crystallizer()
    loop_id = crystallizer.crystallize(strong_pattern(["action_feed"]))
    assert crystallizer.relevant_loop("feed").id == loop_id
    assert [l.id for l in crystallizer.loops_by_category("feeding")][0] == "hunger_response"
    assert crystallizer.relevant_loop("unrelated") is None
