"""
Curiosity Scheduler
===================

Novelty detection and autonomous exploration.

- Every concept the pet explores becomes a Discovery whose familiarity
  grows with each re-encounter. Novelty is the product of unfamiliarity
  across an input's concepts.
- explore() is rate-limited by a cooldown. Accepted explorations go on
  a bounded FIFO queue (oldest dropped), boost the curiosity level and
  update discoveries and their associations.
- While curiosity stays above a floor, an exploration schedules a
  deeper one over the associations it found. Deeper explorations wait
  on a deferred list until their due time and run inside sweep(), so
  recursion depth is always capped.
- sweep() also decays curiosity toward a floor, occasionally spikes it,
  and when curiosity is low with nothing queued, invents something to
  wonder about.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, Iterable, List, Optional, Set, Tuple

import numpy as np

from .config import CuriosityConfig
from .eviction import LRUEviction
from .runtime import Clock, SystemClock, make_rng, millis
from .telemetry import TelemetryBus, TelemetryEvent

logger = logging.getLogger(__name__)


INTEREST_CATEGORIES = [
    'visual_patterns', 'sounds', 'movements', 'objects',
    'interactions', 'environments', 'emotions', 'games',
]

CATEGORY_KEYWORDS = {
    'visual_patterns': ('visual', 'color', 'shape'),
    'sounds': ('audio', 'sound', 'voice'),
    'movements': ('move', 'motion', 'action'),
    'objects': ('object', 'thing', 'item'),
    'interactions': ('play', 'feed', 'pet'),
    'emotions': ('happy', 'sad', 'emotion'),
}

SUGGESTIONS = {
    'visual_patterns': 'Look for interesting shapes or colors',
    'sounds': 'Listen for new sounds',
    'movements': 'Try a new movement or action',
    'objects': 'Investigate a new object',
    'interactions': 'Play a new game',
    'environments': 'Explore a new area',
    'emotions': 'Notice how things feel',
    'games': 'Invent a game',
}

WONDER_PROMPTS = [
    ('what_if_flying', 'movements'),
    ('new_friend', 'interactions'),
    ('hidden_treasure', 'objects'),
    ('strange_sound', 'sounds'),
    ('colorful_pattern', 'visual_patterns'),
    ('feeling_happy', 'emotions'),
]


@dataclass
class Discovery:
    """Something the pet has explored at least once."""
    concept: str
    first_seen_at: float
    encounters: int = 1
    familiarity: float = 0.1
    associations: Set[str] = field(default_factory=set)
    emotional_value: float = 0.5
    last_seen_at: float = 0.0


@dataclass
class Exploration:
    """One exploration episode, possibly derived from an earlier one."""
    id: str
    concepts: List[str]
    timestamp: float
    depth: int = 0
    path: List[str] = field(default_factory=list)
    curiosity_level: float = 0.0
    category: Optional[str] = None
    generated: bool = False


@dataclass
class Interest:
    level: float
    experiences: int = 0
    last_triggered: float = 0.0


def _concepts(symbols: Iterable[Any]) -> List[str]:
    concepts = []
    for symbol in symbols or []:
        concept = getattr(symbol, 'concept', symbol)
        if concept is not None and str(concept) not in concepts:
            concepts.append(str(concept))
    return concepts


def emotional_value(concept: str) -> float:
    value = 0.5
    if any(k in concept for k in ('play', 'food', 'joy')):
        value += 0.3
    if any(k in concept for k in ('danger', 'fear', 'pain')):
        value -= 0.3
    value += 0.1
    return max(0.0, min(1.0, value))


class CuriosityScheduler:
    """
    Discoveries, interests and the exploration queue.

    Args:
        config: Levels, cooldown and capacities
        rng: Generator for interest seeding, spikes and wonder prompts
        clock: Time source (seconds)
        bus: Telemetry bus
    """

    def __init__(
        self,
        config: Optional[CuriosityConfig] = None,
        rng: Optional[np.random.Generator] = None,
        clock: Optional[Clock] = None,
        bus: Optional[TelemetryBus] = None,
    ):
        self.config = config or CuriosityConfig()
        self.rng = rng if rng is not None else make_rng()
        self.clock = clock or SystemClock()
        self.bus = bus

        self.curiosity_level = self.config.initial_curiosity
        self.interests: Dict[str, Interest] = {
            category: Interest(level=float(self.rng.uniform(0.3, 0.7)))
            for category in INTEREST_CATEGORIES
        }
        self.known: Dict[str, Discovery] = {}
        self.queue: Deque[Exploration] = deque()
        self.deferred: List[Tuple[float, Exploration]] = []
        self.history: Deque[Tuple[float, float]] = deque(maxlen=self.config.history_size)
        self.last_explore_at: Optional[float] = None

        self._eviction = LRUEviction(key=lambda d: d.last_seen_at)
        self._exploration_counter = 0
        self.stats = {
            'total_explorations': 0,
            'discoveries': 0,
            'wonder_moments': 0,
            'dropped': 0,
            'deferred_runs': 0,
        }

    # ------------------------------------------------------------------
    # Novelty
    # ------------------------------------------------------------------

    def familiarity(self, concept: str) -> float:
        discovery = self.known.get(concept)
        return discovery.familiarity if discovery else 0.0

    def novelty(self, symbols: Iterable[Any]) -> float:
        concepts = _concepts(symbols)
        if not concepts:
            return 0.0
        score = 1.0
        for concept in concepts:
            score *= 1.0 - self.familiarity(concept)
        return score

    def is_novel(self, symbols: Iterable[Any]) -> bool:
        concepts = _concepts(symbols)
        if not concepts:
            return False
        return self.novelty(concepts) > self.config.novelty_threshold

    # ------------------------------------------------------------------
    # Exploration
    # ------------------------------------------------------------------

    def can_explore(self) -> bool:
        if self.last_explore_at is None:
            return True
        return self.clock() - self.last_explore_at >= self.config.cooldown

    def explore(self, symbols: Iterable[Any]) -> Optional[Exploration]:
        """Start an exploration, or None while the cooldown is running."""
        concepts = _concepts(symbols)
        if not concepts or not self.can_explore():
            return None

        now = self.clock()
        self._exploration_counter += 1
        exploration = Exploration(
            id=f"explore_{millis(self.clock)}_{self._exploration_counter}",
            concepts=concepts,
            timestamp=now,
            curiosity_level=self.curiosity_level,
            category=self.categorize(concepts),
        )

        self.queue.append(exploration)
        while len(self.queue) > self.config.max_queue_size:
            self.queue.popleft()
            self.stats['dropped'] += 1
        self.stats['total_explorations'] += 1

        self.boost(self.config.curiosity_boost)
        self.update_interest(exploration.category, 0.1)

        if self.bus:
            self.bus.emit(TelemetryEvent.CURIOSITY_TRIGGERED, exploration_id=exploration.id,
                          concepts=concepts, category=exploration.category)

        self.last_explore_at = now
        self.stats['wonder_moments'] += 1

        self._process(exploration)
        return exploration

    def categorize(self, concepts: List[str]) -> Optional[str]:
        best, best_score = None, 0.0
        for category in INTEREST_CATEGORIES:
            keywords = CATEGORY_KEYWORDS.get(category)
            if keywords is None:
                score = 0.1
            else:
                score = sum(1.0 for c in concepts if any(k in c for k in keywords)) / len(concepts)
            if score > best_score:
                best, best_score = category, score
        return best

    def _process(self, exploration: Exploration) -> List[Discovery]:
        now = self.clock()
        found = []
        for concept in exploration.concepts:
            discovery = self.known.get(concept)
            if discovery is None:
                discovery = Discovery(
                    concept=concept,
                    first_seen_at=now,
                    familiarity=self.config.initial_familiarity,
                    emotional_value=emotional_value(concept),
                    last_seen_at=now,
                )
                self.known[concept] = discovery
                found.append(discovery)
                self.stats['discoveries'] += 1
                if self.bus:
                    self.bus.emit(TelemetryEvent.DISCOVERY_MADE, concept=concept,
                                  emotional_value=discovery.emotional_value)
            else:
                discovery.encounters += 1
                discovery.familiarity = min(1.0, discovery.familiarity + self.config.familiarity_step)
                discovery.last_seen_at = now
                self.curiosity_level *= 1.0 - discovery.familiarity * 0.1

        for concept in exploration.concepts:
            others = {c for c in exploration.concepts if c != concept}
            self.known[concept].associations |= others

        if len(self.known) > self.config.max_discoveries:
            for concept in self._eviction.select_victims(self.known, self.config.max_discoveries):
                del self.known[concept]

        if (exploration.depth < self.config.exploration_depth
                and self.curiosity_level > self.config.recursion_floor):
            self._schedule_deeper(exploration, now)
        return found

    def _schedule_deeper(self, exploration: Exploration, now: float):
        associations = []
        for concept in exploration.concepts:
            discovery = self.known.get(concept)
            if discovery is None:
                continue
            for other in sorted(discovery.associations):
                if other not in associations:
                    associations.append(other)
        if not associations:
            return

        deeper = Exploration(
            id=f"{exploration.id}_d{exploration.depth + 1}",
            concepts=associations,
            timestamp=now,
            depth=exploration.depth + 1,
            path=exploration.path + [exploration.id],
            curiosity_level=self.curiosity_level,
            category=exploration.category,
        )
        self.deferred.append((now + self.config.recursion_delay, deeper))

    def pop_exploration(self) -> Optional[Exploration]:
        """Oldest queued exploration, for re-entry into the pipeline."""
        if self.queue:
            return self.queue.popleft()
        return None

    # ------------------------------------------------------------------
    # Curiosity level and interests
    # ------------------------------------------------------------------

    def boost(self, amount: float):
        self.curiosity_level = min(1.0, self.curiosity_level + amount)
        self.history.append((self.clock(), self.curiosity_level))

    def set_curiosity(self, level: float) -> float:
        self.curiosity_level = max(0.0, min(1.0, float(level)))
        return self.curiosity_level

    def update_interest(self, category: Optional[str], change: float):
        interest = self.interests.get(category) if category else None
        if interest is None:
            return
        interest.level = max(0.0, min(1.0, interest.level + change))
        interest.experiences += 1
        interest.last_triggered = self.clock()

    def top_interests(self, count: int = 3) -> List[Dict[str, Any]]:
        ranked = sorted(self.interests.items(), key=lambda item: item[1].level, reverse=True)
        return [
            {'category': category, 'level': interest.level, 'experiences': interest.experiences}
            for category, interest in ranked[:count]
        ]

    def suggest(self) -> Dict[str, Any]:
        top = self.top_interests(1)
        if top:
            category = top[0]['category']
            return {
                'category': category,
                'suggestion': SUGGESTIONS.get(category, 'Explore something new'),
                'curiosity_level': self.curiosity_level,
            }
        return {
            'category': 'general',
            'suggestion': 'Be curious about the world',
            'curiosity_level': self.curiosity_level,
        }

    def discoveries(self) -> List[Discovery]:
        return list(self.known.values())

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def sweep(self) -> int:
        """
        Periodic curiosity cycle.

        Runs due deferred explorations, decays curiosity toward the floor,
        rolls for a spontaneous spike and breaks stagnation. Returns the
        number of deferred explorations processed.
        """
        now = self.clock()

        due = [item for item in self.deferred if item[0] <= now]
        self.deferred = [item for item in self.deferred if item[0] > now]
        for _, exploration in due:
            self._process(exploration)
            self.stats['deferred_runs'] += 1

        if self.curiosity_level > self.config.curiosity_floor:
            self.curiosity_level = max(self.config.curiosity_floor,
                                       self.curiosity_level * self.config.curiosity_decay)

        if self.rng.random() < self.config.spike_chance:
            self.boost(self.config.spike_amount)
            if self.bus:
                self.bus.emit(TelemetryEvent.CURIOSITY_SPIKE, level=self.curiosity_level,
                              reason='spontaneous')

        if self.curiosity_level < self.config.stagnation_level and not self.queue:
            self.wonder()

        return len(due)

    def wonder(self) -> Optional[Exploration]:
        """Make up something to explore."""
        concept, category = WONDER_PROMPTS[int(self.rng.integers(len(WONDER_PROMPTS)))]
        exploration = self.explore([concept])
        if exploration is not None:
            exploration.generated = True
            if self.bus:
                self.bus.emit(TelemetryEvent.WONDER_GENERATED, concept=concept, category=category)
        return exploration

    def get_stats(self) -> Dict[str, Any]:
        return {
            **self.stats,
            'curiosity_level': self.curiosity_level,
            'queue': len(self.queue),
            'deferred': len(self.deferred),
            'known': len(self.known),
        }

    def export_state(self) -> Dict[str, Any]:
        return {
            'curiosity_level': self.curiosity_level,
            'interests': self.interests,
            'discoveries': self.known,
            'stats': dict(self.stats),
        }

    def import_state(self, state: Dict[str, Any]):
        self.curiosity_level = state.get('curiosity_level', self.curiosity_level)
        self.interests = state.get('interests', self.interests)
        self.known = state.get('discoveries', self.known)
        self.stats.update(state.get('stats', {}))
