"""
Pattern Resonance Engine
========================

Learns recurring feature sets by similarity instead of training.

Every input is a set of features (symbol concepts). It is compared with
each known pattern's template:

    resonance = |input & template| / |input | template| * confidence

- Best resonance >= threshold: the input becomes another instance of
  that pattern. The template is recomputed as the features present in at
  least half of the instances, strength is multiplied by the
  reinforcement factor and confidence rises with agreement and volume.
- Otherwise a new pattern is seeded from the input alone and linked to
  similar patterns, so later reinforcement propagates along the links.

A hierarchy of coarser levels sits on top of the flat pattern table.
Each input is abstracted once per level (fewer features, categories
instead of values), which lets inputs that differ in detail still
resonate higher up.

All scores are heuristic similarity, not learned weights.
"""

import logging
import math
from collections import Counter, deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, Iterable, List, Optional, Set, Tuple

from .config import ResonanceConfig
from .eviction import ImportanceEviction
from .runtime import Clock, SystemClock, millis
from .telemetry import TelemetryBus, TelemetryEvent

logger = logging.getLogger(__name__)


BASE_PATTERNS = {
    'interaction_positive': ['joy', 'engagement', 'reward'],
    'interaction_negative': ['fear', 'avoidance', 'punishment'],
    'exploration': ['curiosity', 'movement', 'discovery'],
    'rest': ['calm', 'stillness', 'recovery'],
    'play': ['excitement', 'movement', 'joy'],
    'learning': ['attention', 'repetition', 'understanding'],
}


def feature_set(items: Any) -> Set[str]:
    """Normalize symbols, strings, mappings or iterables into a feature set."""
    if items is None:
        return set()
    if isinstance(items, str):
        return {items}
    if isinstance(items, dict):
        return {f"{k}_{v}" for k, v in items.items()
                if isinstance(v, (str, int, float, bool)) and k != 'context'}
    result = set()
    for item in items:
        concept = getattr(item, 'concept', item)
        result.add(str(concept))
    return result


def similarity(a: Iterable[str], b: Iterable[str]) -> float:
    """Jaccard overlap. Two empty sets have nothing in common."""
    a, b = set(a), set(b)
    union = a | b
    if not union:
        return 0.0
    return len(a & b) / len(union)


@dataclass
class Pattern:
    """A learned recurring feature set."""
    id: str
    template: Set[str]
    strength: float = 0.5
    confidence: float = 0.5
    instances: Deque[frozenset] = field(default_factory=deque)
    hierarchy_level: int = 0
    created_at: float = 0.0
    last_seen: float = 0.0
    reinforcements: int = 0
    base: bool = False

    @property
    def instance_count(self) -> int:
        return len(self.instances)

    def distinct_features(self) -> Set[str]:
        distinct = set()
        for instance in self.instances:
            distinct |= instance
        return distinct

    def recompute(self):
        """Template = features in >= 50% of instances; confidence from agreement and volume."""
        n = len(self.instances)
        if n == 0:
            return
        counts = Counter(f for instance in self.instances for f in instance)
        self.template = {f for f, c in counts.items() if c / n >= 0.5}

        distinct = len(counts)
        agreement = len(self.template) / distinct if distinct else 0.0
        volume = min(1.0, n / 10)
        self.confidence = max(0.0, min(1.0, agreement * 0.7 + volume * 0.3))

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'template': sorted(self.template),
            'strength': self.strength,
            'confidence': self.confidence,
            'instances': len(self.instances),
            'hierarchy_level': self.hierarchy_level,
            'reinforcements': self.reinforcements,
        }


@dataclass
class LearningResult:
    """Outcome of one learn() call."""
    pattern_id: Optional[str]
    pattern: Optional[Pattern]
    resonance: float
    is_novel: bool
    single_shot: bool = False
    level_resonance: Dict[int, float] = field(default_factory=dict)

    @property
    def learned(self) -> bool:
        return self.pattern is not None


@dataclass
class AbstractPattern:
    """Coarse pattern stored at one hierarchy level."""
    features: frozenset
    level: int
    count: int = 1
    strength: float = 0.5
    last_seen: float = 0.0


class PatternResonanceEngine:
    """
    Flat pattern table + abstraction hierarchy.

    Args:
        config: Thresholds and factors
        clock: Time source (seconds)
        bus: Telemetry bus
    """

    def __init__(
        self,
        config: Optional[ResonanceConfig] = None,
        clock: Optional[Clock] = None,
        bus: Optional[TelemetryBus] = None,
    ):
        self.config = config or ResonanceConfig()
        self.clock = clock or SystemClock()
        self.bus = bus

        self.patterns: Dict[str, Pattern] = {}
        self.links: Dict[str, Dict[str, float]] = {}
        self.levels: Dict[int, Dict[frozenset, AbstractPattern]] = {
            level: {} for level in range(1, self.config.hierarchy_depth)
        }
        self.profiles: Dict[str, Dict[str, Any]] = {}

        self.learning_rate = self.config.learning_rate
        self._pattern_counter = 0
        self._eviction = ImportanceEviction(key=lambda p: (p.base, p.strength))

        self.stats = {
            'patterns_learned': 0,
            'resonance_events': 0,
            'single_shot_successes': 0,
            'patterns_removed': 0,
        }

        if self.config.seed_base_patterns:
            self._seed_base_patterns()

    def _seed_base_patterns(self):
        now = self.clock()
        for name, template in BASE_PATTERNS.items():
            self.patterns[name] = Pattern(
                id=name,
                template=set(template),
                strength=1.0,
                confidence=0.9,
                instances=deque([frozenset(template)], maxlen=self.config.max_instances),
                created_at=now,
                last_seen=now,
                base=True,
            )
            self.links[name] = {}
            self.stats['patterns_learned'] += 1

    # ------------------------------------------------------------------
    # Scoring
    # ------------------------------------------------------------------

    @staticmethod
    def similarity(a: Iterable[str], b: Iterable[str]) -> float:
        return similarity(a, b)

    def resonance(self, features: Iterable[str], pattern: Pattern) -> float:
        return similarity(features, pattern.template) * pattern.confidence

    def best_match(self, features: Set[str]) -> Tuple[Optional[Pattern], float]:
        best, best_resonance = None, 0.0
        for pattern in self.patterns.values():
            score = self.resonance(features, pattern)
            if score > best_resonance:
                best, best_resonance = pattern, score
        return best, best_resonance

    # ------------------------------------------------------------------
    # Learning
    # ------------------------------------------------------------------

    def learn(self, items: Any, owner_id: Optional[str] = None) -> LearningResult:
        """Reinforce the best matching pattern or learn a new one."""
        features = feature_set(items)
        if not features:
            return LearningResult(pattern_id=None, pattern=None, resonance=0.0, is_novel=False)

        now = self.clock()
        best, best_resonance = self.best_match(features)

        if best is not None and best_resonance >= self.config.resonance_threshold:
            single_shot = self._reinforce(best, features, best_resonance, now)
            result = LearningResult(
                pattern_id=best.id,
                pattern=best,
                resonance=best_resonance,
                is_novel=False,
                single_shot=single_shot,
            )
            self.stats['resonance_events'] += 1
            if self.bus:
                self.bus.emit(TelemetryEvent.PATTERN_LEARNED, pattern_id=best.id,
                              resonance=best_resonance, novel=False)
        else:
            pattern = self._create_pattern(features, now)
            result = LearningResult(
                pattern_id=pattern.id,
                pattern=pattern,
                resonance=best_resonance,
                is_novel=True,
            )
            if self.bus:
                self.bus.emit(TelemetryEvent.NOVEL_PATTERN, pattern_id=pattern.id,
                              features=sorted(features))

        result.level_resonance = self._fold_into_hierarchy(features, now)

        if owner_id is not None:
            self._update_profile(owner_id, result.pattern_id, features)

        return result

    def _update_profile(self, owner_id: str, pattern_id: Optional[str], features: Set[str]):
        profile = self.profiles.setdefault(owner_id, {'patterns': set(), 'preferences': Counter()})
        if pattern_id in self.patterns:
            profile['patterns'].add(pattern_id)
        preferences = profile['preferences']
        preferences.update(features)
        if len(preferences) > self.config.max_preferences:
            profile['preferences'] = Counter(dict(preferences.most_common(self.config.max_preferences)))

    def _reinforce(self, pattern: Pattern, features: Set[str], resonance: float, now: float) -> bool:
        pattern.instances.append(frozenset(features))
        pattern.recompute()
        pattern.strength = min(1.0, pattern.strength * self.config.reinforcement_factor)
        pattern.reinforcements += 1
        pattern.last_seen = now

        for other_id, weight in self.links.get(pattern.id, {}).items():
            other = self.patterns.get(other_id)
            if other is not None:
                other.strength = min(1.0, other.strength + self.config.link_propagation * weight)

        single_shot = pattern.reinforcements == 1 and resonance > self.config.single_shot_bar
        if single_shot:
            self.stats['single_shot_successes'] += 1
            if self.bus:
                self.bus.emit(TelemetryEvent.SINGLE_SHOT, pattern_id=pattern.id, resonance=resonance)
        return single_shot

    def _create_pattern(self, features: Set[str], now: float) -> Pattern:
        self._pattern_counter += 1
        pattern = Pattern(
            id=f"pattern_{millis(self.clock)}_{self._pattern_counter}",
            template=set(features),
            strength=min(1.0, self.config.base_strength + self.config.novelty_bonus),
            confidence=0.5,
            instances=deque([frozenset(features)], maxlen=self.config.max_instances),
            created_at=now,
            last_seen=now,
        )

        self.links[pattern.id] = {}
        for other in self.patterns.values():
            weight = similarity(features, other.template)
            if weight > self.config.link_floor:
                self.links[pattern.id][other.id] = weight
                self.links.setdefault(other.id, {})[pattern.id] = weight

        self.patterns[pattern.id] = pattern
        self.stats['patterns_learned'] += 1

        if len(self.patterns) > self.config.max_patterns:
            victims = self._eviction.select_victims(self.patterns, self.config.max_patterns)
            self._remove(victims)

        logger.debug("New pattern %s from %s", pattern.id, sorted(features))
        return pattern

    def _remove(self, pattern_ids: Iterable[str]):
        for pattern_id in list(pattern_ids):
            if self.patterns.pop(pattern_id, None) is None:
                continue
            for other_id in self.links.pop(pattern_id, {}):
                self.links.get(other_id, {}).pop(pattern_id, None)
            for profile in self.profiles.values():
                profile['patterns'].discard(pattern_id)
            self.stats['patterns_removed'] += 1

    def set_learning_rate(self, rate: float) -> float:
        self.learning_rate = max(0.01, min(1.0, float(rate)))
        return self.learning_rate

    # ------------------------------------------------------------------
    # Hierarchy
    # ------------------------------------------------------------------

    def abstract_features(self, features: Iterable[str], level: int) -> frozenset:
        """
        Coarser view of a feature set.

        Level L drops floor(n * L/depth * 0.5) trailing features of the
        sorted set (at least one survives) and reduces "category:value"
        or "category_value" features to their category.
        """
        ordered = sorted(features)
        if not ordered:
            return frozenset()
        degree = level / self.config.hierarchy_depth
        drop = math.floor(len(ordered) * degree * 0.5)
        kept = ordered[:max(1, len(ordered) - drop)]
        return frozenset(_category(f) for f in kept)

    def _fold_into_hierarchy(self, features: Set[str], now: float) -> Dict[int, float]:
        level_resonance = {}
        for level, table in self.levels.items():
            abstract = self.abstract_features(features, level)
            level_resonance[level] = max(
                (similarity(abstract, known) for known in table), default=0.0)

            entry = table.get(abstract)
            if entry is None:
                table[abstract] = AbstractPattern(features=abstract, level=level, last_seen=now)
                if len(table) > self.config.max_level_patterns:
                    victims = ImportanceEviction(key=lambda a: a.count).select_victims(
                        table, self.config.max_level_patterns)
                    for key in victims:
                        del table[key]
            else:
                entry.count += 1
                entry.strength = min(1.0, entry.strength + self.learning_rate * (1.0 - entry.strength))
                entry.last_seen = now
        return level_resonance

    def hierarchy_resonance(self, items: Any) -> Dict[int, float]:
        """Best resonance per hierarchy level without learning."""
        features = feature_set(items)
        result = {}
        for level, table in self.levels.items():
            abstract = self.abstract_features(features, level)
            result[level] = max((similarity(abstract, known) for known in table), default=0.0)
        return result

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def find_best_pattern(self, items: Any, memories: Optional[List[Any]] = None) -> Optional[Tuple[str, float]]:
        """
        Best matching pattern for an input, boosted when related memories
        reference the pattern.
        """
        features = feature_set(items)
        if not features:
            return None

        referenced = set()
        for record in memories or []:
            for source in (getattr(record, 'context', None), getattr(record, 'content', None)):
                if isinstance(source, dict) and source.get('pattern_id'):
                    referenced.add(source['pattern_id'])

        best_id, best_score = None, 0.0
        for pattern in self.patterns.values():
            score = self.resonance(features, pattern)
            if pattern.id in referenced:
                score = min(1.0, score * 1.2)
            if score > best_score:
                best_id, best_score = pattern.id, score
        if best_id is None:
            return None
        return best_id, best_score

    def get_pattern(self, pattern_id: str) -> Optional[Pattern]:
        return self.patterns.get(pattern_id)

    def linked(self, pattern_id: str) -> Dict[str, float]:
        return dict(self.links.get(pattern_id, {}))

    def profile(self, owner_id: str) -> Dict[str, Any]:
        profile = self.profiles.get(owner_id)
        if profile is None:
            return {'patterns': [], 'preferences': []}
        return {
            'patterns': sorted(p for p in profile['patterns'] if p in self.patterns),
            'preferences': profile['preferences'].most_common(5),
        }

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def decay(self) -> int:
        """Multiply every strength by the decay factor; drop patterns under the floor."""
        removed = [pid for pid, pattern in self.patterns.items()
                   if _decayed(pattern, self.config.pattern_decay) < self.config.strength_floor]
        self._remove(removed)

        for table in self.levels.values():
            faded = [key for key, entry in table.items()
                     if _decayed(entry, self.config.pattern_decay) < self.config.strength_floor]
            for key in faded:
                del table[key]
        return len(removed)

    def consolidate(self, records: Iterable[Any], owner_id: Optional[str] = None) -> Optional[LearningResult]:
        """Fold a batch of memory records into one feature set and learn it."""
        features: Set[str] = set()
        for record in records:
            features |= set(getattr(record, 'features', None) or [])
        if not features:
            return None
        return self.learn(features, owner_id=owner_id)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def get_stats(self) -> Dict[str, Any]:
        return {
            **self.stats,
            'patterns': len(self.patterns),
            'links': sum(len(l) for l in self.links.values()) // 2,
            'abstract_patterns': {level: len(t) for level, t in self.levels.items()},
            'learning_rate': self.learning_rate,
        }

    def export_state(self) -> Dict[str, Any]:
        return {
            'patterns': self.patterns,
            'links': self.links,
            'levels': self.levels,
            'profiles': self.profiles,
            'learning_rate': self.learning_rate,
            'pattern_counter': self._pattern_counter,
            'stats': dict(self.stats),
        }

    def import_state(self, state: Dict[str, Any]):
        self.patterns = state.get('patterns', self.patterns)
        self.links = state.get('links', self.links)
        self.levels = state.get('levels', self.levels)
        self.profiles = state.get('profiles', self.profiles)
        self.learning_rate = state.get('learning_rate', self.learning_rate)
        self._pattern_counter = state.get('pattern_counter', self._pattern_counter)
        self.stats.update(state.get('stats', {}))


def _category(feature: str) -> str:
    if ':' in feature:
        return feature.split(':', 1)[0]
    if '_' in feature:
        return feature.split('_', 1)[0]
    return feature


def _decayed(entry, rate: float) -> float:
    entry.strength *= rate
    return entry.strength


__all__ = [
    'BASE_PATTERNS',
    'Pattern',
    'LearningResult',
    'AbstractPattern',
    'PatternResonanceEngine',
    'feature_set',
    'similarity',
]
