import pytest

from petmind.config import MemoryConfig
from petmind.eviction import ImportanceEviction, LRUEviction
from petmind.memory import MemoryKind, MemoryRecord, MemoryStore, calculate_importance
from petmind.runtime import ManualClock


def make_store(clock=None, **overrides):
    return MemoryStore(MemoryConfig(**overrides), clock=clock or ManualClock(start=1000.0))


def episodic(features, **fields):
    return MemoryRecord(kind=MemoryKind.EPISODIC, features=list(features), **fields)


def test_importance_heuristic():
    assert calculate_importance(MemoryRecord()) == 0.5
    assert calculate_importance(MemoryRecord(emotion="happy")) == pytest.approx(0.7)
    assert calculate_importance(MemoryRecord(
        emotion="happy", tags=["learning"], context="owner nearby", novelty=0.9)) == 1.0


def test_importance_is_clamped_on_store():
    store = make_store()
    high = store.store(episodic(["a"], importance=4.0))
    low = store.store(episodic(["b"], importance=-1.0))
    assert high.importance == 1.0
    assert low.importance == 0.0


def test_store_assigns_id_and_timestamp():
    clock = ManualClock(start=1234.5)
    store = make_store(clock)
    record = store.store(episodic(["a"]))
    assert record.id.startswith("mem_1234500_")
    assert record.created_at == 1234.5


def test_episodic_cap_holds_after_every_store():
    clock = ManualClock(start=1000.0)
    store = make_store(clock, max_episodic=5)
    for i in range(20):
        clock.advance(1.0)
        store.store(episodic([f"f{i}"], importance=(i % 7) / 10))
        assert len(store.episodic) <= 5
        assert len(store.records) <= 5


def test_episodic_eviction_drops_least_important():
    clock = ManualClock(start=1000.0)
    store = make_store(clock, max_episodic=2)
    keep = store.store(episodic(["keep"], importance=0.9))
    clock.advance(1)
    store.store(episodic(["drop"], importance=0.1))
    clock.advance(1)
    newest = store.store(episodic(["new"], importance=0.5))

    assert store.episodic == [keep.id, newest.id]


def test_semantic_records_merge_by_concept():
    store = make_store()
    first = store.store(MemoryRecord(kind="semantic", concept="ball", importance=0.4,
                                     associations={"red"}))
    second = store.store(MemoryRecord(kind="semantic", concept="ball", importance=0.8,
                                      associations={"round"}, content={"seen": 2}))

    assert second is first
    assert len(store.semantic) == 1
    assert first.strength == pytest.approx(1.1)
    assert first.associations == {"red", "round"}
    assert first.importance == 0.8
    assert first.content == {"seen": 2}


def test_procedural_success_rate():
    store = make_store()
    for success in (True, True, False, True):
        store.store(MemoryRecord(kind=MemoryKind.PROCEDURAL, action="sit", success=success))
    store.store(MemoryRecord(kind=MemoryKind.PROCEDURAL, content={"procedure": "roll"}))

    skill = store.get_skill("sit")
    assert skill.executions == 4
    assert skill.success_rate == 0.75
    assert store.get_skill("roll").executions == 1


def test_unknown_kind_goes_to_general():
    store = make_store()
    record = store.store(MemoryRecord(kind="dreams", content="flying"))
    assert record.kind == MemoryKind.GENERAL
    assert record.id in store.general


def test_retrieve_updates_bookkeeping_and_ranks():
    clock = ManualClock(start=1000.0)
    store = make_store(clock)
    low = store.store(episodic(["ball"], importance=0.3))
    high = store.store(episodic(["ball", "red"], importance=0.9))
    store.store(episodic(["bone"], importance=1.0))

    clock.advance(5)
    results = store.retrieve({"features": ["ball"]})

    assert [r.id for r in results] == [high.id, low.id]
    assert all(r.retrieval_count == 1 for r in results)
    assert all(r.last_retrieved_at == 1005.0 for r in results)


def test_retrieve_by_text_list_and_action():
    store = make_store()
    fed = store.store(episodic(["food"], action="feed", content={"note": "Evening meal"}))
    store.store(episodic(["toy"], action="play"))

    assert [r.id for r in store.retrieve("evening")] == [fed.id]
    assert [r.id for r in store.retrieve(["action_feed"])] == [fed.id]
    assert [r.id for r in store.retrieve({"action": "feed"})] == [fed.id]
    assert store.retrieve({}) == []


def test_retrieve_limits_episodic_search():
    store = make_store(episodic_search_limit=3)
    for _ in range(6):
        store.store(episodic(["ball"]))
    assert len(store.retrieve("ball")) == 3


def test_query_is_read_only():
    store = make_store()
    record = store.store(episodic(["ball"], owner_id="ana", importance=0.6))
    store.store(episodic(["ball"], owner_id="ben", importance=0.2))

    found = store.query({"owner_id": "ana", "feature": "ball", "min_importance": 0.5})

    assert [r.id for r in found] == [record.id]
    assert record.retrieval_count == 0


def test_recent_is_newest_first_per_owner():
    clock = ManualClock(start=1000.0)
    store = make_store(clock)
    ids = []
    for i in range(4):
        clock.advance(1)
        ids.append(store.store(episodic([f"f{i}"], owner_id="ana" if i % 2 == 0 else "ben")).id)

    assert [r.id for r in store.recent("ana")] == [ids[2], ids[0]]
    assert [r.id for r in store.recent(limit=1)] == [ids[3]]


def test_consolidation_creates_semantic_summary():
    store = make_store(consolidation_batch=10)
    for _ in range(8):
        store.store(episodic(["action_feed"], action="feed", importance=0.6))
    store.store(episodic(["toy"], action="play", importance=0.6))

    summaries = store.consolidate()

    assert len(summaries) == 1
    summary = summaries[0]
    assert summary.kind == MemoryKind.SEMANTIC
    assert summary.concept == "action_feed"
    assert summary.source == "consolidation"
    assert summary.strength == pytest.approx(8 / 9)
    assert summary.importance == pytest.approx(0.6)
    assert summary.content["count"] == 8


def test_repeated_consolidation_accumulates_strength():
    store = make_store(consolidation_batch=4)
    for _ in range(4):
        store.store(episodic(["x"], action="feed"))
    first = store.consolidate()[0]
    second = store.consolidate()[0]
    assert second is first
    assert first.strength == pytest.approx(2.0)


def test_forgetting_purges_weak_stale_records():
    clock = ManualClock(start=1000.0)
    store = make_store(clock, importance_decay=0.5, forgetting_floor=0.1, staleness_window=100.0)
    weak = store.store(episodic(["old"], importance=0.15))
    recalled = store.store(episodic(["kept"], importance=0.15))
    strong = store.store(episodic(["strong"], importance=1.0))

    store.retrieve({"features": ["kept"]})
    purged = store.forget()

    assert purged == 1
    assert store.get(weak.id) is None
    assert store.get(recalled.id) is recalled
    assert store.get(strong.id) is strong

    clock.advance(101)
    store.forget()
    assert store.get(recalled.id) is None
    assert weak.id not in store.episodic


def test_decay_sweeps_never_raise_importance():
    store = make_store(importance_decay=0.9, forgetting_floor=0.0)
    records = [store.store(episodic([f"f{i}"], importance=i / 10)) for i in range(11)]
    previous = [r.importance for r in records]
    for _ in range(5):
        store.forget()
        current = [r.importance for r in records]
        assert all(0.0 <= c <= p <= 1.0 for c, p in zip(current, previous))
        previous = current


def test_retrieve_relevant_deduplicates():
    store = make_store()
    record = store.store(episodic(["ball", "red"]))
    results = store.retrieve_relevant(["ball", "red"])
    assert [r.id for r in results] == [record.id]
    assert record.retrieval_count == 2


def test_custom_eviction_policy_is_used():
    clock = ManualClock(start=1000.0)
    store = MemoryStore(MemoryConfig(max_episodic=2), clock=clock, episodic_policy=LRUEviction())
    first = store.store(episodic(["a"], importance=1.0))
    clock.advance(1)
    second = store.store(episodic(["b"], importance=0.1))
    clock.advance(1)
    store.retrieve("a")
    clock.advance(1)
    store.store(episodic(["c"], importance=0.1))

    assert store.get(first.id) is first
    assert store.get(second.id) is None


def test_eviction_ties_drop_oldest_first():
    policy = ImportanceEviction()
    entries = {name: MemoryRecord(importance=0.5) for name in ("a", "b", "c")}
    assert policy.select_victims(entries, 1) == ["a", "b"]
    assert policy.select_victims(entries, 5) == []

    ranked = [MemoryRecord(importance=v) for v in (0.9, 0.1, 0.5)]
    assert policy.survivors(ranked, 2) == [ranked[0], ranked[2]]


def test_record_dict_round_trip_keeps_fields():
    record = MemoryRecord(kind=MemoryKind.SEMANTIC, concept="ball", associations={"red"},
                          features=["ball"], importance=0.7, id="mem_1")
    restored = MemoryRecord.from_dict(record.to_dict())
    assert restored.kind == MemoryKind.SEMANTIC
    assert restored.associations == {"red"}
    assert restored.importance == 0.7
