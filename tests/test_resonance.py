import pytest

from petmind.config import ResonanceConfig
from petmind.memory import MemoryRecord
from petmind.resonance import BASE_PATTERNS, Pattern, PatternResonanceEngine, feature_set, similarity
from petmind.runtime import ManualClock


def make_engine(**overrides):
    return PatternResonanceEngine(ResonanceConfig(**overrides), clock=ManualClock(start=500.0))


def test_similarity_is_jaccard():
    assert similarity({"a", "b"}, {"a", "b"}) == 1.0
    assert similarity({"a", "b"}, {"b", "c"}) == pytest.approx(1 / 3)
    assert similarity(set(), set()) == 0.0


def test_identical_template_resonates_fully_at_full_confidence():
    engine = make_engine(seed_base_patterns=False)
    pattern = Pattern(id="p", template={"x", "y"}, confidence=1.0)
    assert engine.resonance({"x", "y"}, pattern) == 1.0


def test_feature_set_normalizes_inputs():
    assert feature_set({"action": "feed", "context": {"room": "kitchen"}}) == {"action_feed"}
    assert feature_set("ball") == {"ball"}
    assert feature_set(None) == set()


def test_base_patterns_are_seeded():
    engine = make_engine()
    assert set(BASE_PATTERNS) <= set(engine.patterns)
    play = engine.patterns["play"]
    assert play.confidence == 0.9 and play.strength == 1.0 and play.base


def test_first_input_creates_novel_pattern():
    engine = make_engine()
    result = engine.learn(["action_feed"])

    assert result.is_novel
    assert result.learned
    assert result.pattern.confidence == 0.5
    assert result.pattern.strength == pytest.approx(0.8)
    assert result.pattern.template == {"action_feed"}


def test_repeat_reinforces_same_pattern():
    engine = make_engine()
    first = engine.learn(["action_feed"])
    strengths = [first.pattern.strength]
    confidences = [first.pattern.confidence]

    for _ in range(4):
        result = engine.learn(["action_feed"])
        assert result.pattern_id == first.pattern_id
        assert not result.is_novel
        strengths.append(result.pattern.strength)
        confidences.append(result.pattern.confidence)

    assert strengths == sorted(strengths)
    assert strengths[-1] == 1.0
    assert confidences[1] == pytest.approx(0.76)
    assert confidences == sorted(confidences)
    assert engine.patterns[first.pattern_id].instance_count == 5


def test_template_keeps_majority_features():
    engine = make_engine(seed_base_patterns=False, resonance_threshold=0.1)
    pattern = engine.learn(["a", "b"]).pattern
    engine.learn(["a", "c"])
    engine.learn(["a", "b"])
    assert pattern.template == {"a", "b"}


def test_single_shot_is_reported_on_first_strong_reinforcement():
    engine = make_engine(seed_base_patterns=False)
    engine.patterns["known"] = Pattern(id="known", template={"x"}, confidence=0.95, strength=0.5)

    result = engine.learn(["x"])

    assert result.single_shot
    assert engine.stats["single_shot_successes"] == 1
    assert not engine.learn(["x"]).single_shot


def test_new_patterns_link_to_similar_ones_and_share_reinforcement():
    engine = make_engine(seed_base_patterns=False, resonance_threshold=0.4)
    first = engine.learn(["a", "b"]).pattern
    second = engine.learn(["a", "b", "c"]).pattern

    assert engine.linked(second.id) == {first.id: pytest.approx(2 / 3)}
    before = first.strength
    engine.learn(["a", "b", "c"])
    assert first.strength > before


def test_hierarchy_abstracts_to_categories():
    engine = make_engine()
    abstract = engine.abstract_features(["color_red", "shape_round", "size:big", "zz"], level=4)
    # 4 features, degree 0.8 -> drop floor(1.6) = 1 trailing feature
    assert abstract == frozenset({"color", "shape", "size"})


def test_hierarchy_resonance_sees_shared_abstractions():
    engine = make_engine()
    engine.learn(["color_red", "shape_round"])
    levels = engine.hierarchy_resonance(["color_blue", "shape_square"])
    assert set(levels) == {1, 2, 3, 4}
    assert levels[1] == 1.0


def test_decay_drops_weak_patterns_and_links():
    engine = make_engine(seed_base_patterns=False, pattern_decay=0.5, strength_floor=0.45,
                         resonance_threshold=0.9)
    first = engine.learn(["a", "b"]).pattern
    second = engine.learn(["a", "b", "c"]).pattern
    first.strength = 1.0

    removed = engine.decay()

    assert removed == 1
    assert second.id not in engine.patterns
    assert engine.linked(first.id) == {}


def test_decay_is_monotonic():
    engine = make_engine()
    engine.learn(["ball"])
    before = {pid: p.strength for pid, p in engine.patterns.items()}
    for _ in range(3):
        engine.decay()
        after = {pid: p.strength for pid, p in engine.patterns.items()}
        assert all(after[pid] <= before[pid] for pid in after)
        before = after


def test_max_patterns_evicts_weakest_learned():
    engine = make_engine(max_patterns=8, resonance_threshold=0.99)
    for i in range(5):
        engine.learn([f"feature_{i}_{j}" for j in range(3)])
    assert len(engine.patterns) == 8
    assert set(BASE_PATTERNS) <= set(engine.patterns)


def test_find_best_pattern_boosts_patterns_referenced_by_memory():
    engine = make_engine(seed_base_patterns=False, resonance_threshold=0.99)
    a = engine.learn(["ball", "red"]).pattern
    b = engine.learn(["ball", "blue"]).pattern

    plain = engine.find_best_pattern(["ball"])
    memories = [MemoryRecord(content={"pattern_id": b.id})]
    boosted = engine.find_best_pattern(["ball"], memories)

    assert plain[0] == a.id
    assert boosted[0] == b.id
    assert boosted[1] == pytest.approx(0.5 * 0.5 * 1.2)


def test_consolidate_learns_union_of_record_features():
    engine = make_engine(seed_base_patterns=False)
    records = [MemoryRecord(features=["a"]), MemoryRecord(features=["b"]), MemoryRecord()]
    result = engine.consolidate(records, owner_id="ana")
    assert result.pattern.template == {"a", "b"}
    assert engine.profile("ana")["patterns"] == [result.pattern_id]
    assert engine.consolidate([MemoryRecord()]) is None


def test_learning_rate_is_clamped():
    engine = make_engine()
    assert engine.set_learning_rate(5) == 1.0
    assert engine.set_learning_rate(0) == 0.01


def test_state_round_trip():
    engine = make_engine()
    learned = engine.learn(["ball"]).pattern_id
    restored = make_engine()
    restored.import_state(engine.export_state())
    assert learned in restored.patterns


def test_owner_profiles_track_only_live_patterns_and_top_preferences():
    engine = make_engine(seed_base_patterns=False, max_patterns=5, max_preferences=4)
    for i in range(20):
        engine.learn([f"toy_{i}", "ball"], owner_id="ana")

    profile = engine.profiles["ana"]
    assert profile["patterns"] == set(engine.patterns)
    assert len(profile["preferences"]) == 4
    assert profile["preferences"].most_common(1) == [("ball", 20)]
