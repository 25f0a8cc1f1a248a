"""
Behavior Crystallizer
=====================

Promotes reliable patterns into directly triggerable behavior loops.

Loop lifecycle:

    CANDIDATE -> CRYSTALLIZED -> ACTIVE <-> DORMANT -> REMOVED
                       \\-> MERGED (two loops fused into a new one)

- A pattern becomes a candidate once its resonance clears the candidate
  bar, and is crystallized when it is also strong and seen often enough.
- Crystallization is keyed by a resonance signature (sorted trigger and
  response features). Crystallizing the same signature again reinforces
  the existing loop instead of creating a duplicate.
- Triggering moves a loop into a capacity-bounded active set; the
  oldest active loop is evicted when the set is full.
- Loops outside the active set decay each sweep and are removed under
  the floor.
"""

import logging
from collections import OrderedDict, deque
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Deque, Dict, List, Optional, Set

import numpy as np

from .config import CrystallizerConfig
from .resonance import Pattern, feature_set, similarity
from .runtime import Clock, SystemClock, make_rng, millis
from .telemetry import TelemetryBus, TelemetryEvent

logger = logging.getLogger(__name__)


class LoopState(Enum):
    CANDIDATE = auto()
    CRYSTALLIZED = auto()
    ACTIVE = auto()
    DORMANT = auto()
    REMOVED = auto()
    MERGED = auto()


CORE_BEHAVIORS = {
    'friendly_greeting': {
        'trigger': ['see_owner', 'morning', 'return'],
        'response': ['excitement', 'approach', 'vocalize_happy'],
        'category': 'greeting',
    },
    'hunger_response': {
        'trigger': ['hunger', 'see_food', 'feeding_time'],
        'response': ['approach_food', 'eat', 'satisfaction'],
        'category': 'feeding',
    },
    'play_initiation': {
        'trigger': ['boredom', 'see_toy', 'energy_high'],
        'response': ['grab_toy', 'playful_movement', 'invite_play'],
        'category': 'playing',
    },
    'comfort_seeking': {
        'trigger': ['tired', 'stress', 'cold'],
        'response': ['find_cozy_spot', 'curl_up', 'relax'],
        'category': 'comfort',
    },
    'curiosity_response': {
        'trigger': ['novel_stimulus', 'unknown_object', 'strange_sound'],
        'response': ['approach_cautiously', 'investigate', 'assess'],
        'category': 'exploring',
    },
}

# Checked in order; first category with a matching keyword wins
CATEGORY_KEYWORDS = [
    ('greeting', ['hello', 'greet', 'see_owner', 'return', 'morning']),
    ('feeding', ['feed', 'food', 'eat', 'hunger', 'treat']),
    ('playing', ['play', 'toy', 'game', 'ball', 'fetch']),
    ('sleeping', ['sleep', 'nap', 'tired', 'rest']),
    ('exploring', ['explore', 'novel', 'curious', 'discover', 'unknown']),
    ('learning', ['teach', 'learn', 'trick', 'train']),
    ('bonding', ['pet', 'love', 'affection', 'cuddle']),
    ('comfort', ['comfort', 'calm', 'warm', 'cold', 'stress']),
]

CATEGORY_RESPONSES = {
    'greeting': ['excitement', 'approach', 'vocalize_happy'],
    'feeding': ['approach_food', 'eat', 'satisfaction'],
    'playing': ['grab_toy', 'playful_movement', 'invite_play'],
    'sleeping': ['find_cozy_spot', 'curl_up', 'rest'],
    'exploring': ['approach_cautiously', 'investigate', 'assess'],
    'learning': ['attention', 'repeat_trick', 'understanding'],
    'bonding': ['nuzzle', 'stay_close', 'vocalize_happy'],
    'comfort': ['find_cozy_spot', 'curl_up', 'relax'],
    'general': ['acknowledge'],
}


def infer_category(features) -> str:
    joined = ' '.join(features)
    for category, keywords in CATEGORY_KEYWORDS:
        if any(k in joined for k in keywords):
            return category
    return 'general'


def infer_emotion(features) -> str:
    """Emotion implied by a loop's trigger and response features."""
    joined = ' '.join(features)
    if any(k in joined for k in ('happy', 'joy', 'play')):
        return 'happy'
    if any(k in joined for k in ('sad', 'tired', 'stress')):
        return 'sad'
    if any(k in joined for k in ('excitement', 'energy')):
        return 'excited'
    if any(k in joined for k in ('comfort', 'relax', 'calm')):
        return 'content'
    if any(k in joined for k in ('curious', 'investigate')):
        return 'curious'
    return 'neutral'


def resonance_signature(trigger, response) -> str:
    return '|'.join(sorted(trigger)) + '->' + '|'.join(sorted(response))


@dataclass
class BehaviorLoop:
    """Stimulus -> response association with usage counters."""
    id: str
    trigger_features: List[str]
    response_features: List[str]
    strength: float = 0.8
    success_count: int = 0
    failure_count: int = 0
    last_triggered_at: Optional[float] = None
    resonance_signature: str = ""
    category: str = "general"
    state: LoopState = LoopState.CRYSTALLIZED
    created_at: float = 0.0
    pattern_id: Optional[str] = None
    context: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not self.resonance_signature:
            self.resonance_signature = resonance_signature(self.trigger_features, self.response_features)

    @property
    def success_rate(self) -> float:
        total = self.success_count + self.failure_count
        return self.success_count / total if total else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'trigger': list(self.trigger_features),
            'response': list(self.response_features),
            'strength': self.strength,
            'success_count': self.success_count,
            'failure_count': self.failure_count,
            'last_triggered_at': self.last_triggered_at,
            'signature': self.resonance_signature,
            'category': self.category,
            'state': self.state.name.lower(),
        }


@dataclass
class LoopMatch:
    loop_id: str
    loop: BehaviorLoop
    resonance: float


class BehaviorCrystallizer:
    """
    Behavior loop table, candidate tracking and active set.

    Args:
        config: Thresholds, capacities and weights
        rng: Generator for response variation
        clock: Time source (seconds)
        bus: Telemetry bus
    """

    def __init__(
        self,
        config: Optional[CrystallizerConfig] = None,
        rng: Optional[np.random.Generator] = None,
        clock: Optional[Clock] = None,
        bus: Optional[TelemetryBus] = None,
    ):
        self.config = config or CrystallizerConfig()
        self.rng = rng if rng is not None else make_rng()
        self.clock = clock or SystemClock()
        self.bus = bus

        self.loops: Dict[str, BehaviorLoop] = {}
        self.signatures: Dict[str, str] = {}
        self.candidates: Dict[str, float] = {}
        self.active: 'OrderedDict[str, None]' = OrderedDict()
        self.history: Deque[Dict[str, Any]] = deque(maxlen=self.config.history_size)

        self._loop_counter = 0
        self.stats = {
            'total_crystallized': 0,
            'successful_triggers': 0,
            'merges': 0,
            'removed': 0,
        }

        if self.config.seed_core_behaviors:
            self._seed_core_behaviors()

    def _seed_core_behaviors(self):
        now = self.clock()
        for name, behavior in CORE_BEHAVIORS.items():
            self._add(BehaviorLoop(
                id=name,
                trigger_features=list(behavior['trigger']),
                response_features=list(behavior['response']),
                strength=0.9,
                success_count=10,
                category=behavior['category'],
                created_at=now,
            ))

    def _add(self, loop: BehaviorLoop) -> str:
        self.loops[loop.id] = loop
        self.signatures[loop.resonance_signature] = loop.id
        self.stats['total_crystallized'] += 1
        return loop.id

    # ------------------------------------------------------------------
    # Crystallization
    # ------------------------------------------------------------------

    def consider(self, pattern_id: str, pattern: Pattern, resonance: float,
                 context: Optional[Dict[str, Any]] = None) -> Optional[str]:
        """Track a pattern as a candidate; crystallize it once it qualifies."""
        if pattern is None or resonance < self.config.candidate_resonance:
            return None

        self.candidates[pattern_id] = resonance
        if (pattern.strength > self.config.crystallization_strength
                and pattern.instance_count >= self.config.min_instances):
            return self.crystallize(pattern, context=context)
        return None

    def crystallize(self, pattern: Pattern, context: Optional[Dict[str, Any]] = None) -> str:
        """Create a loop from a pattern, or reinforce the loop with the same signature."""
        trigger = sorted(pattern.template)
        category = infer_category(trigger)
        response = list(CATEGORY_RESPONSES[category])
        signature = resonance_signature(trigger, response)

        self.candidates.pop(pattern.id, None)

        existing_id = self.signatures.get(signature)
        if existing_id is not None and existing_id in self.loops:
            self.reinforce(existing_id, True)
            return existing_id

        self._loop_counter += 1
        loop = BehaviorLoop(
            id=f"loop_{millis(self.clock)}_{self._loop_counter}",
            trigger_features=trigger,
            response_features=response,
            strength=self.config.seed_strength,
            success_count=pattern.instance_count,
            resonance_signature=signature,
            category=category,
            created_at=self.clock(),
            pattern_id=pattern.id,
            context=dict(context or {}),
        )
        self._add(loop)

        logger.info("Crystallized loop %s (%s) from %s", loop.id, category, pattern.id)
        if self.bus:
            self.bus.emit(TelemetryEvent.LOOP_CRYSTALLIZED, loop_id=loop.id,
                          category=category, strength=loop.strength)
        return loop.id

    # ------------------------------------------------------------------
    # Matching and triggering
    # ------------------------------------------------------------------

    def resonate(self, data: Any) -> List[LoopMatch]:
        """Loops matching an input, strongest resonance first."""
        features = _input_features(data)
        context = data.get('context') if isinstance(data, dict) else None
        if not isinstance(context, dict) or not context:
            context = None

        now = self.clock()
        tw, cw = self.config.trigger_weight, self.config.context_weight
        matches = []
        for loop in self.loops.values():
            score = tw * similarity(features, loop.trigger_features)
            weight = tw
            if context is not None and loop.context:
                score += cw * _context_overlap(context, loop.context)
                weight += cw
            score = score / weight * loop.strength

            if (loop.last_triggered_at is not None
                    and now - loop.last_triggered_at < self.config.recency_window):
                score *= self.config.recency_boost

            score = min(1.0, score)
            if score > self.config.match_threshold:
                matches.append(LoopMatch(loop_id=loop.id, loop=loop, resonance=score))

        matches.sort(key=lambda m: m.resonance, reverse=True)
        return matches

    def trigger(self, loop_id: str) -> Optional[Dict[str, Any]]:
        """Activate a loop and build its response. Unknown ids return None."""
        loop = self.loops.get(loop_id)
        if loop is None:
            return None

        now = self.clock()
        if loop_id in self.active:
            self.active.move_to_end(loop_id)
        else:
            self.active[loop_id] = None
            while len(self.active) > self.config.max_active_loops:
                evicted_id, _ = self.active.popitem(last=False)
                evicted = self.loops.get(evicted_id)
                if evicted is not None:
                    evicted.state = LoopState.DORMANT

        loop.state = LoopState.ACTIVE
        loop.last_triggered_at = now

        response = self._build_response(loop)
        self.history.append({'loop_id': loop_id, 'timestamp': now, 'response': response})
        self.stats['successful_triggers'] += 1

        if self.bus:
            self.bus.emit(TelemetryEvent.LOOP_TRIGGERED, loop_id=loop_id, response=response)
        return response

    def _build_response(self, loop: BehaviorLoop) -> Dict[str, Any]:
        response = {
            'loop_id': loop.id,
            'action': loop.response_features[0] if loop.response_features else 'default_response',
            'sequence': list(loop.response_features) or ['acknowledge'],
            'emotion': infer_emotion(loop.trigger_features + loop.response_features),
            'strength': loop.strength,
            'category': loop.category,
        }
        if loop.strength < 0.5:
            response['confidence'] = 'low'
            response['variation'] = float(self.rng.uniform(0.0, 0.3))
        else:
            response['confidence'] = 'high'
            response['variation'] = float(self.rng.uniform(0.0, 0.1))
        return response

    def reinforce(self, loop_id: str, success: bool) -> Optional[BehaviorLoop]:
        """Success strengthens, failure weakens by half as much."""
        loop = self.loops.get(loop_id)
        if loop is None:
            return None

        bonus = self.config.reinforcement_bonus
        if success:
            loop.success_count += 1
            loop.strength = min(1.0, loop.strength + bonus)
            event = TelemetryEvent.LOOP_REINFORCED
        else:
            loop.failure_count += 1
            loop.strength = max(self.config.failure_floor, loop.strength - bonus * 0.5)
            event = TelemetryEvent.LOOP_WEAKENED

        if self.bus:
            self.bus.emit(event, loop_id=loop_id, strength=loop.strength)
        return loop

    def merge(self, first_id: str, second_id: str) -> Optional[str]:
        """Fuse two loops into a new one; both originals are removed."""
        first = self.loops.get(first_id)
        second = self.loops.get(second_id)
        if first is None or second is None or first_id == second_id:
            return None

        trigger = list(dict.fromkeys(first.trigger_features + second.trigger_features))
        response = list(dict.fromkeys(first.response_features + second.response_features))

        for loop in (first, second):
            self._discard(loop)
            loop.state = LoopState.MERGED

        merged = BehaviorLoop(
            id=f"merged_{first_id}_{second_id}",
            trigger_features=trigger,
            response_features=response,
            strength=(first.strength + second.strength) / 2,
            success_count=first.success_count + second.success_count,
            failure_count=first.failure_count + second.failure_count,
            category=first.category,
            created_at=self.clock(),
            context={**second.context, **first.context},
        )
        self._add(merged)
        self.stats['merges'] += 1

        if self.bus:
            self.bus.emit(TelemetryEvent.LOOPS_MERGED, loop_id=merged.id, sources=[first_id, second_id])
        return merged.id

    def _discard(self, loop: BehaviorLoop):
        self.loops.pop(loop.id, None)
        self.active.pop(loop.id, None)
        if self.signatures.get(loop.resonance_signature) == loop.id:
            del self.signatures[loop.resonance_signature]

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_loop(self, loop_id: str) -> Optional[BehaviorLoop]:
        return self.loops.get(loop_id)

    def relevant_loop(self, action: str) -> Optional[BehaviorLoop]:
        """Strongest loop related to an action name."""
        best, best_score = None, 0.0
        for loop in self.loops.values():
            score = 0.0
            if action in loop.trigger_features or f"action_{action}" in loop.trigger_features:
                score += 0.5
            if any(action in r for r in loop.response_features):
                score += 0.3
            if loop.category and loop.category in action:
                score += 0.2
            score *= loop.strength
            if score > best_score:
                best, best_score = loop, score
        return best

    def loops_by_category(self, category: str) -> List[BehaviorLoop]:
        loops = [l for l in self.loops.values() if l.category == category]
        return sorted(loops, key=lambda l: l.strength, reverse=True)

    def active_loops(self) -> List[BehaviorLoop]:
        return [self.loops[lid] for lid in self.active if lid in self.loops]

    def loops_for_signature(self, signature: str) -> List[BehaviorLoop]:
        return [l for l in self.loops.values() if l.resonance_signature == signature]

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def decay(self) -> int:
        """Decay loops outside the active set, remove weak ones, expire idle active loops."""
        now = self.clock()
        removed = []
        for loop in list(self.loops.values()):
            if loop.id in self.active:
                continue
            loop.strength *= self.config.decay_rate
            loop.state = LoopState.DORMANT
            if loop.strength < self.config.removal_floor:
                removed.append(loop)

        for loop in removed:
            self._discard(loop)
            loop.state = LoopState.REMOVED
            self.stats['removed'] += 1
            if self.bus:
                self.bus.emit(TelemetryEvent.LOOP_REMOVED, loop_id=loop.id)

        for loop_id in list(self.active):
            loop = self.loops.get(loop_id)
            if loop is None or loop.last_triggered_at is None or \
                    now - loop.last_triggered_at > self.config.active_window:
                self.active.pop(loop_id, None)
                if loop is not None:
                    loop.state = LoopState.DORMANT
        return len(removed)

    def average_strength(self) -> float:
        if not self.loops:
            return 0.0
        return sum(l.strength for l in self.loops.values()) / len(self.loops)

    def get_stats(self) -> Dict[str, Any]:
        return {
            **self.stats,
            'loops': len(self.loops),
            'active': len(self.active),
            'candidates': len(self.candidates),
            'average_strength': self.average_strength(),
        }

    def export_state(self) -> Dict[str, Any]:
        return {
            'loops': self.loops,
            'candidates': self.candidates,
            'loop_counter': self._loop_counter,
            'stats': dict(self.stats),
        }

    def import_state(self, state: Dict[str, Any]):
        self.loops = state.get('loops', self.loops)
        self.signatures = {l.resonance_signature: l.id for l in self.loops.values()}
        self.candidates = state.get('candidates', self.candidates)
        self.active.clear()
        self._loop_counter = state.get('loop_counter', self._loop_counter)
        self.stats.update(state.get('stats', {}))


def _input_features(data: Any) -> Set[str]:
    features = feature_set(data)
    if isinstance(data, dict):
        for key in ('emotion', 'concept'):
            if isinstance(data.get(key), str):
                features.add(data[key])
        if isinstance(data.get('features'), (list, tuple, set)):
            features |= {str(f) for f in data['features']}
    return features


def _context_overlap(a: Dict[str, Any], b: Dict[str, Any]) -> float:
    keys = set(a) | set(b)
    if not keys:
        return 0.0
    shared = sum(1 for k in keys if k in a and k in b and a[k] == b[k])
    return shared / len(keys)


__all__ = [
    'LoopState',
    'BehaviorLoop',
    'LoopMatch',
    'BehaviorCrystallizer',
    'CORE_BEHAVIORS',
    'infer_category',
    'infer_emotion',
]
