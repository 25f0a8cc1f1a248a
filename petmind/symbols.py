"""
Symbol Encoder
==============

Converts raw interaction events into symbols without tokenization.

Every distinct concept (a known word, a key/value pair, a perceived
object) owns one sparse vector, generated on first sight and cached for
the lifetime of the encoder. Concepts that appear together in one event
are bound; bindings strengthen with repetition and fade without it.

Input shapes:
- text            -> extracted concepts ("play", "action_feed", ...)
- mappings        -> one "<key>_<value>" concept per item
- numbers/arrays  -> one synthetic "raw_<ms>" symbol
- anything else   -> one synthetic "unique_<ms>" symbol

Encoding never fails: unknown input always yields at least one symbol.
"""

import logging
import re
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

import numpy as np

from .config import SymbolConfig
from .eviction import ImportanceEviction
from .runtime import Clock, SystemClock, make_rng, millis
from .telemetry import TelemetryBus, TelemetryEvent

logger = logging.getLogger(__name__)


BASE_SYMBOLS = [
    'self', 'other', 'food', 'play', 'rest', 'danger',
    'comfort', 'curiosity', 'affection', 'movement',
    'sound', 'light', 'touch', 'warmth', 'cold',
]

KNOWN_CONCEPTS = ['play', 'food', 'sleep', 'happy', 'sad', 'love', 'pet', 'toy']
ACTION_VERBS = ['feed', 'play', 'pet', 'teach']


@dataclass
class Symbol:
    """
    A concept with its (shared) sparse vector.

    The vector is the encoder's cached array, not a copy. Strength is
    the per-event signal (confidence, amplitude); the long-lived fade
    is tracked in SymbolEncoder.activation.
    """
    concept: str
    vector: np.ndarray
    strength: float = 1.0
    modality: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


BindingKey = Tuple[str, str]


def binding_key(a: str, b: str) -> BindingKey:
    """Unordered pair key."""
    return (a, b) if a <= b else (b, a)


class SymbolEncoder:
    """
    Symbol space + binding table.

    The symbol space maps concept -> vector. Vectors are allocated once
    and afterwards only mutated in place (creative noise), clamped to
    [-1, 1]. Past max_symbols the least active learned concepts are
    evicted together with their bindings.
    """

    def __init__(
        self,
        config: Optional[SymbolConfig] = None,
        rng: Optional[np.random.Generator] = None,
        clock: Optional[Clock] = None,
        bus: Optional[TelemetryBus] = None,
    ):
        self.config = config or SymbolConfig()
        self.rng = rng if rng is not None else make_rng()
        self.clock = clock or SystemClock()
        self.bus = bus

        self.symbol_space: Dict[str, np.ndarray] = {}
        self.activation: Dict[str, float] = {}
        self.bindings: Dict[BindingKey, float] = {}

        self.evicted = 0
        self._synthetic_counter = 0
        self._eviction = ImportanceEviction(key=lambda activation: activation)

        self.activity_buffer: deque = deque(maxlen=self.config.activity_buffer_size)
        self.recent_activity = 0

        for concept in BASE_SYMBOLS:
            self._ensure_vector(concept)

    # ------------------------------------------------------------------
    # Vectors
    # ------------------------------------------------------------------

    def generate_vector(self) -> np.ndarray:
        """Sparse distributed representation with values in [-1, 1]."""
        dims = self.config.dimensions
        vector = np.zeros(dims, dtype=np.float32)
        active = max(1, int(dims * self.config.sparsity))
        indices = self.rng.choice(dims, size=active, replace=False)
        vector[indices] = self.rng.uniform(-1.0, 1.0, size=active)
        return vector

    def _ensure_vector(self, concept: str) -> np.ndarray:
        vector = self.symbol_space.get(concept)
        if vector is None:
            vector = self.generate_vector()
            self.symbol_space[concept] = vector
            self.activation[concept] = 1.0
        else:
            boosted = self.activation.get(concept, 0.0) + self.config.activation_boost
            self.activation[concept] = min(1.0, boosted)
        return vector

    def _make_symbol(self, concept: str, strength: Any = 1.0, **extra) -> Symbol:
        try:
            strength = float(np.clip(float(strength), 0.0, 1.0))
        except (TypeError, ValueError):
            strength = 1.0
        if np.isnan(strength):
            strength = 1.0
        return Symbol(concept=concept, vector=self._ensure_vector(concept), strength=strength, **extra)

    @property
    def symbol_count(self) -> int:
        return len(self.symbol_space)

    def _evict_symbols(self, protected: Iterable[str] = ()) -> int:
        """Drop the least active learned concepts beyond max_symbols."""
        overflow = len(self.symbol_space) - self.config.max_symbols
        if overflow <= 0:
            return 0

        keep = set(BASE_SYMBOLS) | set(protected)
        candidates = {c: a for c, a in self.activation.items() if c not in keep and c in self.symbol_space}
        victims = set(self._eviction.select_victims(candidates, max(0, len(candidates) - overflow)))
        if not victims:
            return 0

        for concept in victims:
            del self.symbol_space[concept]
            self.activation.pop(concept, None)
        self.bindings = {
            key: strength for key, strength in self.bindings.items()
            if key[0] not in victims and key[1] not in victims
        }
        self.evicted += len(victims)
        logger.debug("Evicted %d inactive symbols", len(victims))
        return len(victims)

    def _synthetic_concept(self, prefix: str) -> str:
        self._synthetic_counter += 1
        return f"{prefix}_{millis(self.clock)}_{self._synthetic_counter}"

    # ------------------------------------------------------------------
    # Encoding
    # ------------------------------------------------------------------

    def encode(self, data: Any) -> List[Symbol]:
        """Encode any input into an ordered, duplicate-free list of symbols."""
        if isinstance(data, str):
            symbols = [self._make_symbol(c) for c in self.extract_concepts(data)]
        elif isinstance(data, dict):
            symbols = self._encode_structured(data)
        elif isinstance(data, (int, float, np.ndarray, bytes, bytearray, np.number)) and not isinstance(data, bool):
            symbols = [self._make_symbol(self._synthetic_concept('raw'), metadata={'raw': True})]
        elif isinstance(data, (list, tuple)) and data and all(isinstance(x, str) for x in data):
            symbols = [self._make_symbol(c) for c in _unique(data)]
        else:
            symbols = [self._make_symbol(self._synthetic_concept('unique'))]

        if not symbols:
            symbols = [self._make_symbol(self._synthetic_concept('unique'))]

        self._evict_symbols(s.concept for s in symbols)
        self.bind(symbols)
        self._update_activity(len(symbols))

        if self.bus:
            self.bus.emit(TelemetryEvent.SYMBOLS_ENCODED, concepts=[s.concept for s in symbols])
        return symbols

    def _encode_structured(self, data: Dict[str, Any]) -> List[Symbol]:
        concepts = _unique(_flatten_items(data))
        return [self._make_symbol(c, metadata={'source': 'structured'}) for c in concepts]

    def extract_concepts(self, text: str) -> List[str]:
        """Concepts, not word tokens."""
        lower = text.lower()
        concepts = [c for c in KNOWN_CONCEPTS if c in lower]

        if re.search(r'[!?]+', lower):
            concepts.append('excitement')

        concepts.extend(f"action_{verb}" for verb in ACTION_VERBS if verb in lower)

        if not concepts:
            concepts.append(self._synthetic_concept('unique'))
        return _unique(concepts)

    def encode_perception(self, perception: Dict[str, Any]) -> List[Symbol]:
        """
        Encode fused sensor features.

        Expected shape (all parts optional):
            {'visual': {'objects': [{'type': 'ball', 'confidence': 0.9}]},
             'auditory': {'sounds': [{'type': 'voice', 'amplitude': 0.4}]}}
        """
        symbols: List[Symbol] = []
        perception = perception if isinstance(perception, dict) else {}

        for obj in _entries(perception, 'visual', 'objects'):
            symbols.append(self._make_symbol(
                f"visual_{obj.get('type', 'object')}",
                strength=obj.get('confidence', 1.0),
                modality='visual',
                metadata=dict(obj),
            ))

        for sound in _entries(perception, 'auditory', 'sounds'):
            symbols.append(self._make_symbol(
                f"audio_{sound.get('type', 'sound')}",
                strength=sound.get('amplitude', 1.0),
                modality='auditory',
                metadata=dict(sound),
            ))

        if not symbols:
            return self.encode(None)

        self._evict_symbols(s.concept for s in symbols)
        self.bind(symbols)
        if len(symbols) > 1:
            self._bind_cross_modal(symbols)
        self._update_activity(len(symbols))

        if self.bus:
            self.bus.emit(TelemetryEvent.SYMBOLS_ENCODED, concepts=[s.concept for s in symbols], perception=True)
        return symbols

    # ------------------------------------------------------------------
    # Bindings
    # ------------------------------------------------------------------

    def bind(self, symbols: List[Symbol]):
        """Strengthen every co-occurring pair."""
        concepts = [s.concept for s in symbols]
        increment = self.config.binding_increment
        for i in range(len(concepts)):
            for j in range(i + 1, len(concepts)):
                if concepts[i] == concepts[j]:
                    continue
                key = binding_key(concepts[i], concepts[j])
                self.bindings[key] = min(1.0, self.bindings.get(key, 0.0) + increment)

    def _bind_cross_modal(self, symbols: List[Symbol]):
        visual = [s for s in symbols if s.modality == 'visual']
        auditory = [s for s in symbols if s.modality == 'auditory']
        for v in visual:
            for a in auditory:
                key = binding_key(v.concept, a.concept)
                self.bindings[key] = max(self.bindings.get(key, 0.0), self.config.cross_modal_binding)

    def binding_strength(self, a: str, b: str) -> float:
        return self.bindings.get(binding_key(a, b), 0.0)

    def associations(self, concept: str, min_strength: float = 0.0) -> List[Tuple[str, float]]:
        """Concepts bound to `concept`, strongest first."""
        result = []
        for (a, b), strength in self.bindings.items():
            if strength < min_strength:
                continue
            if a == concept:
                result.append((b, strength))
            elif b == concept:
                result.append((a, strength))
        return sorted(result, key=lambda x: x[1], reverse=True)

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def decay(self) -> int:
        """
        One decay sweep: weaken bindings, fade activations, add noise.

        Returns number of bindings removed.
        """
        rate = self.config.decay_rate
        floor = self.config.binding_floor

        removed = []
        for key, strength in self.bindings.items():
            new_strength = strength * rate
            if new_strength < floor:
                removed.append(key)
            else:
                self.bindings[key] = new_strength
        for key in removed:
            del self.bindings[key]

        for concept in self.activation:
            self.activation[concept] *= rate

        self.add_creative_noise()
        return len(removed)

    def add_creative_noise(self):
        """Small in-place perturbations of cached vectors."""
        level = self.config.noise_level
        magnitude = self.config.noise_magnitude
        for vector in self.symbol_space.values():
            mask = self.rng.random(vector.shape[0]) < level
            count = int(mask.sum())
            if count == 0:
                continue
            vector[mask] += self.rng.uniform(-magnitude, magnitude, size=count).astype(np.float32)
            np.clip(vector, -1.0, 1.0, out=vector)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def find_similar(self, concept: str, threshold: Optional[float] = None) -> List[Tuple[str, float]]:
        """Concepts whose vectors are cosine-similar to `concept`."""
        if threshold is None:
            threshold = self.config.similarity_threshold
        target = self.symbol_space.get(concept)
        if target is None:
            return []

        similar = []
        for other, vector in self.symbol_space.items():
            if other == concept:
                continue
            similarity = cosine_similarity(target, vector)
            if similarity > threshold:
                similar.append((other, similarity))
        return sorted(similar, key=lambda x: x[1], reverse=True)

    def _update_activity(self, count: int):
        self.recent_activity = count
        self.activity_buffer.append(count)

    def get_recent_activity(self) -> float:
        """Mean symbols per event over the buffer, normalized to ~0-1."""
        if not self.activity_buffer:
            return 0.0
        return min(1.0, float(np.mean(self.activity_buffer)) / 10.0)

    @property
    def binding_count(self) -> int:
        return len(self.bindings)

    def get_stats(self) -> Dict[str, Any]:
        return {
            'symbols': self.symbol_count,
            'bindings': self.binding_count,
            'activity': self.get_recent_activity(),
        }

    def export_state(self) -> Dict[str, Any]:
        return {
            'symbol_space': {k: v.copy() for k, v in self.symbol_space.items()},
            'bindings': dict(self.bindings),
            'symbol_count': self.symbol_count,
        }

    def import_state(self, state: Dict[str, Any]):
        for concept, vector in state.get('symbol_space', {}).items():
            existing = self.symbol_space.get(concept)
            if existing is not None and existing.shape == vector.shape:
                existing[:] = vector
            else:
                self.symbol_space[concept] = np.asarray(vector, dtype=np.float32).copy()
        self.bindings.update(state.get('bindings', {}))
        for concept in self.symbol_space:
            self.activation.setdefault(concept, 1.0)
        self._evict_symbols()


def cosine_similarity(a: np.ndarray, b: np.ndarray) -> float:
    norm = float(np.linalg.norm(a) * np.linalg.norm(b))
    if norm == 0.0:
        return 0.0
    return float(np.dot(a, b) / norm)


def _flatten_items(data: Dict[str, Any], prefix: str = '') -> Iterable[str]:
    for key, value in data.items():
        name = f"{prefix}{key}"
        if isinstance(value, dict):
            yield from _flatten_items(value, prefix=f"{name}_")
        elif isinstance(value, (list, tuple, set)):
            for item in value:
                yield f"{name}_{item}"
        else:
            yield f"{name}_{value}"


def _unique(items: Iterable[str]) -> List[str]:
    seen = set()
    result = []
    for item in items:
        if item not in seen:
            seen.add(item)
            result.append(item)
    return result


def _entries(perception: Dict[str, Any], section: str, key: str) -> List[Dict[str, Any]]:
    """Detected items of one modality; malformed parts are skipped."""
    part = perception.get(section)
    items = part.get(key) if isinstance(part, dict) else None
    if not isinstance(items, (list, tuple)):
        return []
    return [item for item in items if isinstance(item, dict)]
