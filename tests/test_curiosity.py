import pytest

from petmind.config import CuriosityConfig
from petmind.curiosity import INTEREST_CATEGORIES, CuriosityScheduler, emotional_value
from petmind.runtime import ManualClock, make_rng


def make_scheduler(clock=None, **overrides):
    overrides.setdefault("spike_chance", 0.0)
    return CuriosityScheduler(CuriosityConfig(**overrides), rng=make_rng(5),
                              clock=clock or ManualClock(start=100.0))


def test_interests_are_seeded_in_range():
    scheduler = make_scheduler()
    assert set(scheduler.interests) == set(INTEREST_CATEGORIES)
    assert all(0.3 <= i.level < 0.7 for i in scheduler.interests.values())


def test_explore_respects_cooldown():
    clock = ManualClock(start=100.0)
    scheduler = make_scheduler(clock, cooldown=5.0)

    assert scheduler.explore(["ball"]) is not None
    clock.advance(4.9)
    assert scheduler.explore(["ball"]) is None
    clock.set(105.0)
    assert scheduler.explore(["ball"]) is not None


def test_familiarity_grows_and_novelty_falls():
    clock = ManualClock(start=100.0)
    scheduler = make_scheduler(clock, cooldown=0.0)
    assert scheduler.novelty(["ball"]) == 1.0
    assert scheduler.is_novel(["ball"])

    scheduler.explore(["ball"])
    assert scheduler.familiarity("ball") == 0.1
    scheduler.explore(["ball"])
    assert scheduler.familiarity("ball") == pytest.approx(0.2)
    assert scheduler.novelty(["ball"]) == pytest.approx(0.8)
    assert scheduler.known["ball"].encounters == 2


def test_exploration_boosts_curiosity_and_categorizes():
    scheduler = make_scheduler()
    exploration = scheduler.explore(["visual_ball", "audio_voice", "visual_red"])

    assert exploration.category == "visual_patterns"
    assert scheduler.curiosity_level == pytest.approx(0.75)
    assert scheduler.known["visual_ball"].associations == {"audio_voice", "visual_red"}


def test_queue_is_bounded_fifo():
    clock = ManualClock(start=100.0)
    scheduler = make_scheduler(clock, cooldown=0.0, max_queue_size=3)
    ids = [scheduler.explore([f"thing_{i}"]).id for i in range(5)]

    assert [e.id for e in scheduler.queue] == ids[2:]
    assert scheduler.stats["dropped"] == 2
    assert scheduler.pop_exploration().id == ids[2]


def test_deeper_explorations_wait_for_sweep_and_respect_depth():
    clock = ManualClock(start=100.0)
    scheduler = make_scheduler(clock, cooldown=0.0, exploration_depth=2, recursion_delay=1.0)
    scheduler.explore(["ball", "red"])
    assert len(scheduler.deferred) == 1

    assert scheduler.sweep() == 0
    clock.advance(1.0)
    assert scheduler.sweep() == 1

    depths = []
    for _ in range(5):
        clock.advance(1.0)
        depths.extend(e.depth for _, e in scheduler.deferred)
        scheduler.sweep()
    assert scheduler.deferred == []
    assert max(depths) <= 2


def test_sweep_decays_toward_floor_monotonically():
    scheduler = make_scheduler(curiosity_decay=0.5, curiosity_floor=0.2, stagnation_level=0.0)
    scheduler.set_curiosity(0.9)
    levels = [scheduler.curiosity_level]
    for _ in range(6):
        scheduler.sweep()
        levels.append(scheduler.curiosity_level)

    assert levels == sorted(levels, reverse=True)
    assert levels[-1] == 0.2


def test_stagnation_triggers_wonder():
    scheduler = make_scheduler(stagnation_level=0.3)
    scheduler.set_curiosity(0.1)

    scheduler.sweep()

    assert scheduler.stats["total_explorations"] == 1
    assert scheduler.queue[0].generated
    assert len(scheduler.known) == 1


def test_wonder_marks_generated_exploration():
    scheduler = make_scheduler()
    exploration = scheduler.wonder()
    assert exploration.generated
    assert scheduler.wonder() is None


def test_spike_boosts_curiosity():
    scheduler = make_scheduler(spike_chance=1.0, spike_amount=0.2, curiosity_decay=1.0)
    scheduler.set_curiosity(0.5)
    scheduler.sweep()
    assert scheduler.curiosity_level == pytest.approx(0.7)


def test_discoveries_are_evicted_least_recently_seen():
    clock = ManualClock(start=100.0)
    scheduler = make_scheduler(clock, cooldown=0.0, max_discoveries=2, exploration_depth=0)
    scheduler.explore(["a"])
    clock.advance(1)
    scheduler.explore(["b"])
    clock.advance(1)
    scheduler.explore(["a"])
    clock.advance(1)
    scheduler.explore(["c"])

    assert set(scheduler.known) == {"a", "c"}


def test_suggestion_follows_top_interest():
    scheduler = make_scheduler()
    scheduler.update_interest("sounds", 1.0)
    assert scheduler.top_interests(1)[0]["category"] == "sounds"
    assert scheduler.suggest()["suggestion"] == "Listen for new sounds"


def test_emotional_value_heuristic():
    assert emotional_value("play_ball") == pytest.approx(0.9)
    assert emotional_value("danger_zone") == pytest.approx(0.3)
    assert emotional_value("rock") == pytest.approx(0.6)
