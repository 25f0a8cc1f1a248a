"""
Memory Store
============

Partitioned, importance-ranked, decaying record store.

Records live in one arena (id -> MemoryRecord). Each kind has its own
index over the arena:

- episodic:   time-ordered ids, capacity-bounded
- semantic:   concept key -> id, repeated writes merge
- procedural: action -> ProceduralSkill with a running success rate
- general:    insertion-ordered ids, capacity-bounded

Capacity is enforced by eviction policy objects, never by raising.
Two background sweeps keep the store healthy:

1. Consolidation - recurring episodic groups become semantic summaries
2. Forgetting    - importance decays; weak, stale records are purged

Retrieval is not read-only: every returned record has its retrieval
count and timestamp updated, which protects it from forgetting.
"""

import logging
import math
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from .config import MemoryConfig
from .eviction import EvictionPolicy, ImportanceEviction, LRUEviction
from .persistence import MemoryArchive
from .runtime import Clock, SystemClock, millis
from .telemetry import TelemetryBus, TelemetryEvent

logger = logging.getLogger(__name__)


class MemoryKind(Enum):
    """Partition a record is routed to."""
    EPISODIC = "episodic"
    SEMANTIC = "semantic"
    PROCEDURAL = "procedural"
    GENERAL = "general"

    @classmethod
    def coerce(cls, value: Any) -> 'MemoryKind':
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            return cls.GENERAL


IMPORTANT_TAGS = {'learning', 'achievement'}


@dataclass
class MemoryRecord:
    """A single stored memory."""
    kind: MemoryKind = MemoryKind.EPISODIC
    content: Any = None
    owner_id: Optional[str] = None
    importance: Optional[float] = None      # Computed on store when None
    id: str = ""
    created_at: float = 0.0
    retrieval_count: int = 0
    last_retrieved_at: Optional[float] = None

    # Matching keys
    concept: Optional[str] = None
    action: Optional[str] = None
    features: List[str] = field(default_factory=list)

    # Importance cues
    emotion: Optional[str] = None
    context: Any = None
    tags: List[str] = field(default_factory=list)
    novelty: float = 0.0

    # Semantic / procedural payload
    strength: float = 1.0
    associations: Set[str] = field(default_factory=set)
    success: Optional[bool] = None
    source: str = "experience"

    def keys(self) -> Set[str]:
        """Everything a feature query can match against."""
        keys = set(self.features)
        if self.concept:
            keys.add(self.concept)
        if self.action:
            keys.add(f"action_{self.action}")
        return keys

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'kind': self.kind.value,
            'content': self.content,
            'owner_id': self.owner_id,
            'importance': self.importance,
            'created_at': self.created_at,
            'retrieval_count': self.retrieval_count,
            'last_retrieved_at': self.last_retrieved_at,
            'concept': self.concept,
            'action': self.action,
            'features': list(self.features),
            'emotion': self.emotion,
            'context': self.context,
            'tags': list(self.tags),
            'novelty': self.novelty,
            'strength': self.strength,
            'associations': sorted(self.associations),
            'success': self.success,
            'source': self.source,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'MemoryRecord':
        return cls(
            kind=MemoryKind.coerce(data.get('kind', 'general')),
            content=data.get('content'),
            owner_id=data.get('owner_id'),
            importance=data.get('importance'),
            id=str(data.get('id', '')),
            created_at=float(data.get('created_at') or 0.0),
            retrieval_count=int(data.get('retrieval_count') or 0),
            last_retrieved_at=data.get('last_retrieved_at'),
            concept=data.get('concept'),
            action=data.get('action'),
            features=list(data.get('features') or []),
            emotion=data.get('emotion'),
            context=data.get('context'),
            tags=list(data.get('tags') or []),
            novelty=float(data.get('novelty') or 0.0),
            strength=float(data.get('strength', 1.0)),
            associations=set(data.get('associations') or []),
            success=data.get('success'),
            source=data.get('source', 'experience'),
        )


@dataclass
class ProceduralSkill:
    """How-to knowledge grouped by action name."""
    action: str
    executions: int = 0
    trials: int = 0
    successes: int = 0
    success_rate: float = 0.5
    record_ids: List[str] = field(default_factory=list)

    def record_outcome(self, success: bool):
        self.trials += 1
        if success:
            self.successes += 1
        self.success_rate = self.successes / self.trials


def calculate_importance(record: MemoryRecord) -> float:
    """Heuristic importance for records stored without one."""
    importance = 0.5

    if record.emotion:
        importance += 0.2

    if IMPORTANT_TAGS & set(record.tags):
        importance += 0.3

    context = str(record.context or '').lower()
    if 'owner' in context or 'user' in context:
        importance += 0.2

    if record.novelty > 0.7:
        importance += 0.2

    return min(1.0, importance)


def _clamp(value: float) -> float:
    value = float(value)
    if math.isnan(value):
        raise ValueError("importance is NaN")
    return max(0.0, min(1.0, value))


class MemoryStore:
    """
    Arena + partition indexes with pluggable eviction.

    Args:
        config: Capacities and sweep parameters
        clock: Time source (seconds)
        bus: Telemetry bus
        archive: Optional JSON archive for best-effort persistence
    """

    def __init__(
        self,
        config: Optional[MemoryConfig] = None,
        clock: Optional[Clock] = None,
        bus: Optional[TelemetryBus] = None,
        archive: Optional[MemoryArchive] = None,
        episodic_policy: Optional[EvictionPolicy] = None,
        semantic_policy: Optional[EvictionPolicy] = None,
        general_policy: Optional[EvictionPolicy] = None,
        procedural_policy: Optional[EvictionPolicy] = None,
    ):
        self.config = config or MemoryConfig()
        self.clock = clock or SystemClock()
        self.bus = bus
        self.archive = archive

        self.episodic_policy = episodic_policy or ImportanceEviction()
        self.semantic_policy = semantic_policy or ImportanceEviction(
            key=lambda r: (r.importance, r.strength))
        self.general_policy = general_policy or ImportanceEviction()
        self.procedural_policy = procedural_policy or LRUEviction()

        # Arena
        self.records: Dict[str, MemoryRecord] = {}

        # Partition indexes
        self.episodic: List[str] = []
        self.semantic: Dict[str, str] = {}
        self.procedural: Dict[str, ProceduralSkill] = {}
        self.general: Dict[str, None] = {}

        # Persisted owner documents (importance-sorted, capped)
        self.owner_documents: Dict[str, List[Dict[str, Any]]] = {}

        self._id_counter = 0
        self.stats = {
            'total_memories': 0,
            'retrievals': 0,
            'consolidations': 0,
            'forgotten': 0,
            'evicted': 0,
            'retention_rate': 0.0,
        }

    # ------------------------------------------------------------------
    # Store
    # ------------------------------------------------------------------

    def _next_id(self) -> str:
        self._id_counter += 1
        return f"mem_{millis(self.clock)}_{self._id_counter}"

    def store(self, record: MemoryRecord) -> MemoryRecord:
        """
        Store a record in its partition.

        Returns the stored record. For semantic records that merge into
        an existing concept this is the existing (updated) record.
        """
        record.kind = MemoryKind.coerce(record.kind)
        if not record.id:
            record.id = self._next_id()
        if not record.created_at:
            record.created_at = self.clock()
        try:
            record.importance = _clamp(record.importance)
        except (TypeError, ValueError):
            if record.importance is not None:
                logger.warning("Replacing malformed importance %r on %s", record.importance, record.id)
            record.importance = _clamp(calculate_importance(record))

        if record.kind == MemoryKind.EPISODIC:
            stored = self._store_episodic(record)
        elif record.kind == MemoryKind.SEMANTIC:
            stored = self._store_semantic(record)
        elif record.kind == MemoryKind.PROCEDURAL:
            stored = self._store_procedural(record)
        else:
            stored = self._store_general(record)

        self.stats['total_memories'] += 1

        if self.bus:
            self.bus.emit(TelemetryEvent.MEMORY_STORED, id=stored.id,
                          kind=stored.kind.value, owner_id=stored.owner_id)

        if stored.importance > self.config.persist_threshold:
            self._persist(stored)

        logger.debug("Stored %s memory %s (importance %.2f)", stored.kind.value, stored.id, stored.importance)
        return stored

    def _store_episodic(self, record: MemoryRecord) -> MemoryRecord:
        self.records[record.id] = record
        self.episodic.append(record.id)

        if len(self.episodic) > self.config.max_episodic:
            partition = {rid: self.records[rid] for rid in self.episodic}
            victims = set(self.episodic_policy.select_victims(partition, self.config.max_episodic))
            self._drop(victims)
            self.episodic = [rid for rid in self.episodic if rid not in victims]
            self.episodic.sort(key=lambda rid: self.records[rid].created_at)
        return record

    def semantic_key(self, record: MemoryRecord) -> str:
        if record.concept:
            return record.concept
        if isinstance(record.content, dict) and record.content.get('concept'):
            return str(record.content['concept'])
        return f"semantic_{record.id}"

    def _store_semantic(self, record: MemoryRecord) -> MemoryRecord:
        key = self.semantic_key(record)
        record.concept = record.concept or key

        existing_id = self.semantic.get(key)
        if existing_id is not None and existing_id in self.records:
            existing = self.records[existing_id]
            if record.source == 'consolidation':
                existing.strength += record.strength
            else:
                existing.strength += self.config.semantic_merge_increment
            existing.associations |= record.associations
            existing.features = list(dict.fromkeys(existing.features + record.features))
            existing.importance = max(existing.importance, record.importance)
            existing.content = record.content
            return existing

        self.records[record.id] = record
        self.semantic[key] = record.id

        if len(self.semantic) > self.config.max_semantic:
            partition = {rid: self.records[rid] for rid in self.semantic.values()}
            victims = set(self.semantic_policy.select_victims(partition, self.config.max_semantic))
            self._drop(victims)
            self.semantic = {k: rid for k, rid in self.semantic.items() if rid not in victims}
        return record

    def _store_procedural(self, record: MemoryRecord) -> MemoryRecord:
        action = record.action
        if not action and isinstance(record.content, dict):
            action = record.content.get('procedure') or record.content.get('action')
        action = str(action or 'unknown')
        record.action = action

        skill = self.procedural.get(action)
        if skill is None:
            skill = self.procedural[action] = ProceduralSkill(action=action)

        self.records[record.id] = record
        skill.record_ids.append(record.id)
        skill.executions += 1
        if record.success is not None:
            skill.record_outcome(bool(record.success))

        if len(skill.record_ids) > self.config.max_procedural_per_action:
            partition = {rid: self.records[rid] for rid in skill.record_ids}
            victims = set(self.procedural_policy.select_victims(
                partition, self.config.max_procedural_per_action))
            self._drop(victims)
            skill.record_ids = [rid for rid in skill.record_ids if rid not in victims]
        return record

    def _store_general(self, record: MemoryRecord) -> MemoryRecord:
        self.records[record.id] = record
        self.general[record.id] = None

        if len(self.general) > self.config.max_general:
            partition = {rid: self.records[rid] for rid in self.general}
            victims = set(self.general_policy.select_victims(partition, self.config.max_general))
            self._drop(victims)
            for rid in victims:
                self.general.pop(rid, None)
        return record

    def _drop(self, ids: Iterable[str]):
        """Remove ids from the arena (indexes are fixed up by the caller)."""
        for rid in ids:
            if self.records.pop(rid, None) is not None:
                self.stats['evicted'] += 1

    # ------------------------------------------------------------------
    # Retrieval
    # ------------------------------------------------------------------

    def retrieve(self, query: Any, limit: Optional[int] = None) -> List[MemoryRecord]:
        """
        Find episodic and semantic records matching the query.

        Results are ranked by importance * (1 + retrievals * 0.1).
        Every returned record is marked as retrieved.
        """
        self.stats['retrievals'] += 1
        matches = _matcher(query)

        results: List[MemoryRecord] = []
        for rid in reversed(self.episodic):
            record = self.records[rid]
            if matches(record):
                results.append(record)
                if len(results) >= self.config.episodic_search_limit:
                    break

        semantic_found = 0
        for rid in self.semantic.values():
            if semantic_found >= self.config.semantic_search_limit:
                break
            record = self.records.get(rid)
            if record is not None and matches(record):
                results.append(record)
                semantic_found += 1

        now = self.clock()
        for record in results:
            record.retrieval_count += 1
            record.last_retrieved_at = now

        results.sort(key=lambda r: r.importance * (1 + r.retrieval_count * 0.1), reverse=True)

        if results and self.bus:
            self.bus.emit(TelemetryEvent.MEMORY_RETRIEVED, id=results[0].id, count=len(results))

        return results[:limit] if limit is not None else results

    def retrieve_relevant(self, concepts: Iterable[str]) -> List[MemoryRecord]:
        """Deduplicated union of retrievals for each concept."""
        unique: Dict[str, MemoryRecord] = {}
        for concept in concepts:
            for record in self.retrieve({'features': [concept]}):
                unique[record.id] = record
        return list(unique.values())

    def get(self, memory_id: str) -> Optional[MemoryRecord]:
        return self.records.get(memory_id)

    def recent(self, owner_id: Optional[str] = None, limit: int = 10) -> List[MemoryRecord]:
        """Most recent episodic memories, newest first (no bookkeeping)."""
        result = []
        for rid in reversed(self.episodic):
            record = self.records[rid]
            if owner_id is None or record.owner_id == owner_id:
                result.append(record)
                if len(result) >= limit:
                    break
        return result

    def query(self, filters: Optional[Dict[str, Any]] = None) -> List[MemoryRecord]:
        """
        Read-only filtering across all partitions, newest first.

        Filters: kind, owner_id, concept, action, feature, min_importance, limit.
        """
        filters = dict(filters or {})
        limit = filters.pop('limit', None)
        kind = filters.get('kind')
        kind = MemoryKind.coerce(kind) if kind is not None else None
        min_importance = float(filters.get('min_importance', 0.0))

        result = []
        for record in self.records.values():
            if kind is not None and record.kind != kind:
                continue
            if 'owner_id' in filters and record.owner_id != filters['owner_id']:
                continue
            if 'concept' in filters and record.concept != filters['concept']:
                continue
            if 'action' in filters and record.action != filters['action']:
                continue
            if 'feature' in filters and filters['feature'] not in record.keys():
                continue
            if record.importance < min_importance:
                continue
            result.append(record)

        result.sort(key=lambda r: r.created_at, reverse=True)
        return result[:int(limit)] if limit is not None else result

    def get_skill(self, action: str) -> Optional[ProceduralSkill]:
        return self.procedural.get(action)

    # ------------------------------------------------------------------
    # Consolidation and forgetting
    # ------------------------------------------------------------------

    @staticmethod
    def pattern_key(record: MemoryRecord) -> str:
        if record.action:
            return f"action_{record.action}"
        if record.concept:
            return f"concept_{record.concept}"
        if record.features:
            return "features_" + "+".join(sorted(record.features))
        return f"kind_{record.kind.value}"

    def consolidate(self) -> List[MemoryRecord]:
        """
        Turn recurring episodic groups into semantic knowledge.

        Scans the most recent batch; a group whose share of the batch
        exceeds the consolidation threshold is summarized.
        """
        batch = [self.records[rid] for rid in self.episodic[-self.config.consolidation_batch:]]
        if not batch:
            return []

        groups: Dict[str, List[MemoryRecord]] = {}
        for record in batch:
            groups.setdefault(self.pattern_key(record), []).append(record)

        summaries = []
        for key, members in groups.items():
            share = len(members) / len(batch)
            if share <= self.config.consolidation_threshold:
                continue

            features = list(dict.fromkeys(f for m in members for f in m.features))
            owners = Counter(m.owner_id for m in members)
            summary = self.store(MemoryRecord(
                kind=MemoryKind.SEMANTIC,
                concept=key,
                content={
                    'pattern': key,
                    'count': len(members),
                    'record_ids': [m.id for m in members],
                    'features': features,
                },
                features=features,
                owner_id=owners.most_common(1)[0][0],
                importance=sum(m.importance for m in members) / len(members),
                strength=share,
                associations=set(features),
                source='consolidation',
            ))
            summaries.append(summary)
            self.stats['consolidations'] += 1

        if summaries and self.bus:
            self.bus.emit(TelemetryEvent.MEMORY_CONSOLIDATED, concepts=[s.concept for s in summaries])
        return summaries

    def forget(self) -> int:
        """
        Forgetting curve sweep.

        Every record's importance decays. Records below the floor that
        were not retrieved within the staleness window are purged.
        """
        now = self.clock()
        decay = self.config.importance_decay
        floor = self.config.forgetting_floor
        window = self.config.staleness_window

        purge: Set[str] = set()
        for rid, record in self.records.items():
            record.importance = _clamp(record.importance * decay)
            stale = record.last_retrieved_at is None or now - record.last_retrieved_at > window
            if record.importance < floor and stale:
                purge.add(rid)

        if purge:
            self._remove(purge)
            self.stats['forgotten'] += len(purge)
            if self.bus:
                self.bus.emit(TelemetryEvent.MEMORIES_FORGOTTEN, count=len(purge))

        self.stats['retention_rate'] = len(self.episodic) / max(1, self.config.max_episodic)
        return len(purge)

    def _remove(self, ids: Set[str]):
        for rid in ids:
            self.records.pop(rid, None)
        self.episodic = [rid for rid in self.episodic if rid not in ids]
        self.semantic = {k: rid for k, rid in self.semantic.items() if rid not in ids}
        for rid in ids:
            self.general.pop(rid, None)
        for skill in self.procedural.values():
            skill.record_ids = [rid for rid in skill.record_ids if rid not in ids]

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _persist(self, record: MemoryRecord):
        if self.archive is None:
            return
        owner_id = record.owner_id or 'default'
        documents = [d for d in self.owner_documents.get(owner_id, []) if d.get('id') != record.id]
        documents.append(record.to_dict())
        self.owner_documents[owner_id] = documents
        documents.sort(key=lambda d: d.get('importance') or 0.0, reverse=True)
        del documents[self.config.owner_document_cap:]
        self.archive.write_owner(owner_id, list(documents))

    def load(self) -> int:
        """Restore checkpointed partitions. Returns number of records loaded."""
        if self.archive is None:
            return 0
        contents = self.archive.load()

        loaded = 0
        for data in contents.episodic:
            record = MemoryRecord.from_dict(data)
            record.kind = MemoryKind.EPISODIC
            if not record.id or record.id in self.records:
                continue
            if record.importance is None:
                record.importance = calculate_importance(record)
            self.records[record.id] = record
            self.episodic.append(record.id)
            loaded += 1
        self.episodic.sort(key=lambda rid: self.records[rid].created_at)
        if len(self.episodic) > self.config.max_episodic:
            keep = self.episodic[-self.config.max_episodic:]
            self._drop(set(self.episodic) - set(keep))
            self.episodic = keep

        for key, data in contents.semantic:
            record = MemoryRecord.from_dict(data)
            record.kind = MemoryKind.SEMANTIC
            record.concept = record.concept or key
            if not record.id:
                record.id = self._next_id()
            if record.importance is None:
                record.importance = calculate_importance(record)
            self.records[record.id] = record
            self.semantic[key] = record.id
            loaded += 1

        for owner_id, documents in contents.owners.items():
            self.owner_documents[owner_id] = documents[:self.config.owner_document_cap]

        self.stats['total_memories'] = len(self.records)
        logger.info("Memory store loaded %d memories", loaded)
        return loaded

    def checkpoint(self) -> bool:
        """Write the global episodic and semantic documents."""
        if self.archive is None:
            return False
        episodic = [self.records[rid].to_dict() for rid in self.episodic]
        semantic = [(key, self.records[rid].to_dict()) for key, rid in self.semantic.items()
                    if rid in self.records]
        return self.archive.checkpoint(episodic, semantic)

    def persisted_for(self, owner_id: str) -> List[Dict[str, Any]]:
        return list(self.owner_documents.get(owner_id, []))

    # ------------------------------------------------------------------
    # Stats
    # ------------------------------------------------------------------

    def count(self) -> int:
        return len(self.records)

    def get_stats(self) -> Dict[str, Any]:
        return {
            **self.stats,
            'episodic': len(self.episodic),
            'semantic': len(self.semantic),
            'procedural': sum(len(s.record_ids) for s in self.procedural.values()),
            'general': len(self.general),
            'stored': len(self.records),
        }


def _matcher(query: Any):
    """Build a predicate for a retrieval query."""
    if isinstance(query, str):
        needle = query.lower()

        def match_text(record: MemoryRecord) -> bool:
            if any(needle in key.lower() for key in record.keys()):
                return True
            return needle in str(record.content).lower()
        return match_text

    if isinstance(query, (list, tuple, set, frozenset)):
        wanted = {str(q) for q in query}
        return lambda record: bool(wanted & record.keys())

    if isinstance(query, dict):
        features = query.get('features')
        wanted = {str(f) for f in features} if features else None
        concept = query.get('concept')
        kind = MemoryKind.coerce(query['kind']) if query.get('kind') is not None else None
        action = query.get('action')
        owner_id = query.get('owner_id')

        if wanted is None and concept is None and kind is None and action is None and owner_id is None:
            return lambda record: False

        def match_fields(record: MemoryRecord) -> bool:
            if wanted is not None and not (wanted & record.keys()):
                return False
            if concept is not None and record.concept != concept and concept not in record.features:
                return False
            if kind is not None and record.kind != kind:
                return False
            if action is not None and record.action != action:
                return False
            if owner_id is not None and record.owner_id != owner_id:
                return False
            return True
        return match_fields

    return lambda record: False
