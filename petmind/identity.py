"""
Identity Aggregator
===================

Folds experiences into a persistent self-model, one per owner.

A self-model holds:
- self-concepts:  "i_exist", "i_social", "i_learned_sit", ... -> strength
- personality:    Big Five dimensions with value and stability
- values:         loyalty, playfulness, curiosity, comfort, affection
- relationships:  entity -> bond, trust, interaction count
- narrative:      capped chronological log of significant experiences

integrate() nudges all of these by small fixed amounts keyed to the
experience category. reflect() periodically turns the narrative into
self-knowledge, stabilizes personality and recomputes coherence:

    coherence = 0.3 * mean self-concept strength
              + 0.3 * mean personality stability
              + 0.2 * mean value importance
              + 0.2 * narrative theme consistency
"""

import logging
from collections import Counter
from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional

import numpy as np

from .config import IdentityConfig
from .runtime import Clock, SystemClock, make_rng
from .telemetry import TelemetryBus, TelemetryEvent

logger = logging.getLogger(__name__)


FUNDAMENTAL_CONCEPTS = {
    'i_exist': 1.0,
    'i_feel': 0.9,
    'i_think': 0.8,
    'i_want': 0.7,
    'i_am_unique': 0.8,
}

PERSONALITY_DIMENSIONS = ['openness', 'conscientiousness', 'extraversion', 'agreeableness', 'neuroticism']

CORE_VALUES = ['loyalty', 'playfulness', 'curiosity', 'comfort', 'affection']

PERSONALITY_DELTAS = {
    'social': {'extraversion': 0.02, 'agreeableness': 0.01},
    'learning': {'openness': 0.02, 'conscientiousness': 0.01},
    'emotional': {'neuroticism': -0.01},
    'achievement': {'conscientiousness': 0.02, 'openness': 0.01},
    'play': {'extraversion': 0.01, 'openness': 0.01},
}

VALUE_MAPPING = {
    'social': 'affection',
    'learning': 'curiosity',
    'play': 'playfulness',
    'achievement': 'loyalty',
    'emotional': 'comfort',
}


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


@dataclass
class Experience:
    """
    Something that happened to the pet.

    Boolean flags drive categorization and significance; unknown keys
    in from_dict() are ignored.
    """
    type: Optional[str] = None
    content: Any = None
    social: bool = False
    interaction: bool = False
    learning: bool = False
    discovery: bool = False
    emotion: Optional[str] = None
    achievement: bool = False
    play: bool = False
    learned: Optional[str] = None
    novel: bool = False
    positive: bool = False
    negative: bool = False
    entity: Optional[str] = None
    importance: float = 0.5
    aligns: List[str] = field(default_factory=list)
    structured: bool = False
    cooperative: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Experience':
        known = {f.name for f in fields(cls)}
        kwargs = {k: v for k, v in (data or {}).items() if k in known}
        if 'with' in (data or {}) and 'entity' not in kwargs:
            kwargs['entity'] = data['with']
        # Relationships are keyed by entity
        entity = kwargs.get('entity')
        if entity is not None and not isinstance(entity, str):
            scalar = isinstance(entity, (int, float)) and not isinstance(entity, bool)
            kwargs['entity'] = str(entity) if scalar else None
        return cls(**kwargs)

    def category(self) -> str:
        if self.social or self.interaction:
            return 'social'
        if self.learning or self.discovery:
            return 'learning'
        if self.emotion:
            return 'emotional'
        if self.achievement:
            return 'achievement'
        if self.play:
            return 'play'
        return 'general'

    def significance(self) -> float:
        score = 0.0
        if self.novel:
            score += 0.3
        if self.emotion and self.emotion != 'neutral':
            score += 0.2
        if self.social:
            score += 0.2
        if self.achievement:
            score += 0.4
        if self.learned:
            score += 0.3
        return score


@dataclass
class SelfConcept:
    strength: float
    formed_at: float = 0.0
    reinforcements: int = 0
    content: Any = None


@dataclass
class Trait:
    value: float = 0.5
    stability: float = 0.5
    last_updated: float = 0.0


@dataclass
class CoreValue:
    importance: float
    actions: int = 0
    last_expressed: float = 0.0


@dataclass
class Relationship:
    bond: float = 0.5
    trust: float = 0.5
    interactions: int = 0
    last_seen: float = 0.0
    emotions: List[str] = field(default_factory=list)


@dataclass
class NarrativeEntry:
    type: str
    content: Any
    importance: float
    timestamp: float
    integrated: bool = False


class SelfModel:
    """Identity state of one pet."""

    def __init__(self, owner_id: str, config: IdentityConfig, rng: np.random.Generator, clock: Clock):
        self.owner_id = owner_id
        self.config = config
        self.clock = clock
        now = clock()

        self.name: Optional[str] = None
        self.self_concepts: Dict[str, SelfConcept] = {
            concept: SelfConcept(strength=strength, formed_at=now)
            for concept, strength in FUNDAMENTAL_CONCEPTS.items()
        }
        self.personality: Dict[str, Trait] = {
            dimension: Trait(value=config.baseline, stability=0.5, last_updated=now)
            for dimension in PERSONALITY_DIMENSIONS
        }
        self.values: Dict[str, CoreValue] = {
            value: CoreValue(importance=float(rng.uniform(0.5, 0.8)))
            for value in CORE_VALUES
        }
        self.relationships: Dict[str, Relationship] = {}
        self.narrative: List[NarrativeEntry] = []

        self.coherence = 0.0
        self.self_awareness = 0.5
        self.reflections = 0
        self.update_coherence()

    # ------------------------------------------------------------------
    # Integration
    # ------------------------------------------------------------------

    def integrate(self, experience: Experience) -> Dict[str, Any]:
        category = experience.category()
        now = self.clock()

        self._update_self_concept(experience, category, now)
        self._adjust_personality(category, now)
        self._process_values(category, now)
        if experience.entity or category == 'social':
            self._update_relationship(experience, now)

        significant = experience.significance() > self.config.significance_threshold
        if significant:
            self.add_to_narrative(experience.type or category, experience.content, experience.importance)

        self.update_coherence()
        return {
            'category': category,
            'impact': self.impact(experience),
            'coherence': self.coherence,
            'significant': significant,
        }

    def _update_self_concept(self, experience: Experience, category: str, now: float):
        key = f"i_{category}"
        concept = self.self_concepts.get(key)
        if concept is None:
            concept = self.self_concepts[key] = SelfConcept(strength=0.3, formed_at=now)
        concept.strength = min(1.0, concept.strength + 0.05)
        concept.reinforcements += 1

        if experience.learned:
            self.self_concepts[f"i_can_{experience.learned}"] = SelfConcept(
                strength=0.5, formed_at=now, reinforcements=1)

    def _adjust_personality(self, category: str, now: float):
        for dimension, change in PERSONALITY_DELTAS.get(category, {}).items():
            trait = self.personality[dimension]
            trait.value = _clamp(trait.value + change)
            trait.last_updated = now
            trait.stability = min(1.0, trait.stability + self.config.stability_step)

    def _process_values(self, category: str, now: float):
        relevant = VALUE_MAPPING.get(category)
        for name, value in self.values.items():
            if name == relevant:
                value.actions += 1
                value.last_expressed = now
                value.importance = min(1.0, value.importance + 0.02)
            else:
                value.importance *= self.config.value_decay

    def _update_relationship(self, experience: Experience, now: float):
        entity = experience.entity or 'owner'
        relationship = self.relationships.get(entity)
        if relationship is None:
            relationship = self.relationships[entity] = Relationship()

        relationship.interactions += 1
        relationship.last_seen = now
        if experience.positive:
            relationship.bond = min(1.0, relationship.bond + 0.02)
            relationship.trust = min(1.0, relationship.trust + 0.01)
        elif experience.negative:
            relationship.bond = max(0.0, relationship.bond - 0.01)
            relationship.trust = max(0.0, relationship.trust - 0.02)

        if experience.emotion:
            relationship.emotions.append(experience.emotion)
            del relationship.emotions[:-self.config.recent_emotions]

    def add_to_narrative(self, entry_type: str, content: Any, importance: float = 0.5):
        self.narrative.append(NarrativeEntry(
            type=entry_type,
            content=content,
            importance=_clamp(importance),
            timestamp=self.clock(),
        ))
        overflow = len(self.narrative) - self.config.narrative_max_length
        if overflow > 0:
            # Lowest importance first, oldest first among equals
            ranked = sorted(range(len(self.narrative)),
                            key=lambda i: (self.narrative[i].importance, i))
            dropped = set(ranked[:overflow])
            self.narrative = [e for i, e in enumerate(self.narrative) if i not in dropped]

    def impact(self, experience: Experience) -> float:
        impact = 0.0
        for name, value in self.values.items():
            if name in experience.aligns:
                impact += value.importance * 0.2
        impact += self._personality_fit(experience) * 0.3
        if experience.novel:
            impact += 0.2
        return min(1.0, impact)

    def _personality_fit(self, experience: Experience) -> float:
        fit = 0.0
        if experience.social and self.personality['extraversion'].value > 0.5:
            fit += 0.3
        if experience.novel and self.personality['openness'].value > 0.5:
            fit += 0.3
        if experience.structured and self.personality['conscientiousness'].value > 0.5:
            fit += 0.2
        if experience.cooperative and self.personality['agreeableness'].value > 0.5:
            fit += 0.2
        return fit

    def set_name(self, name: str):
        self.name = name
        self.self_concepts['my_name'] = SelfConcept(
            strength=1.0, formed_at=self.clock(), reinforcements=1, content=name)
        self.add_to_narrative('naming', f"I am {name}", 1.0)
        self.update_coherence()

    # ------------------------------------------------------------------
    # Reflection
    # ------------------------------------------------------------------

    def reflect(self) -> List[str]:
        self.reflections += 1
        self._integrate_narrative()
        self._evaluate_personality()
        self._reassess_values()
        self._update_self_awareness()
        self.update_coherence()
        return self.insights()

    def _average_concept_strength(self) -> float:
        if not self.self_concepts:
            return 0.0
        return sum(c.strength for c in self.self_concepts.values()) / len(self.self_concepts)

    def _form_concept(self, key: str, strength: float, formed_at: float, reinforcements: int = 1):
        if key in self.self_concepts:
            return
        strength = max(strength, self._average_concept_strength())
        self.self_concepts[key] = SelfConcept(
            strength=min(1.0, strength), formed_at=formed_at, reinforcements=reinforcements)

    def _integrate_narrative(self):
        for entry in self.narrative:
            if entry.integrated:
                continue
            if entry.type == 'achievement':
                self._form_concept(f"i_achieved_{entry.content}", 0.7, entry.timestamp)
            elif entry.type == 'learning':
                self._form_concept(f"i_learned_{entry.content}", 0.6, entry.timestamp)
            entry.integrated = True

    def _evaluate_personality(self):
        now = self.clock()
        baseline = self.config.baseline
        rate = self.config.drift_rate
        for trait in self.personality.values():
            trait.stability = min(1.0, trait.stability + self.config.reflection_stability_step)
            if now - trait.last_updated > self.config.drift_after:
                trait.value = trait.value * (1 - rate) + baseline * rate

    def _ranked_values(self) -> List[str]:
        return sorted(self.values, key=lambda k: self.values[k].importance, reverse=True)

    def _reassess_values(self):
        for name in self._ranked_values()[:self.config.top_values]:
            value = self.values[name]
            self._form_concept(f"i_value_{name}", value.importance, self.clock(), value.actions)

    def _update_self_awareness(self):
        awareness = 0.1 if self.name else 0.0
        awareness += min(0.3, len(self.self_concepts) * 0.01)
        awareness += min(0.2, len(self.narrative) * 0.002)
        awareness += min(0.2, len(self.relationships) * 0.05)
        awareness += min(0.2, self.reflections * 0.001)
        self.self_awareness = _clamp(awareness)

    def narrative_coherence(self) -> float:
        if len(self.narrative) < 2:
            return 0.5
        themes = Counter(entry.type or 'general' for entry in self.narrative)
        return max(themes.values()) / len(self.narrative)

    def update_coherence(self) -> float:
        stability = sum(t.stability for t in self.personality.values()) / len(self.personality)
        importance = sum(v.importance for v in self.values.values()) / len(self.values)
        coherence = (self._average_concept_strength() * 0.3
                     + stability * 0.3
                     + importance * 0.2
                     + self.narrative_coherence() * 0.2)
        self.coherence = _clamp(coherence)
        return self.coherence

    def insights(self) -> List[str]:
        insights = []
        dominant = max(self.personality, key=lambda d: self.personality[d].value)
        insights.append(f"I am very {dominant}")

        ranked = self._ranked_values()
        if ranked:
            insights.append(f"{ranked[0]} is important to me")

        if self.relationships:
            closest = max(self.relationships, key=lambda e: self.relationships[e].bond)
            insights.append(f"I trust {closest}")
        return insights

    def describe(self) -> Dict[str, Any]:
        return {
            'name': self.name or 'unnamed',
            'personality': {d: t.value for d, t in self.personality.items()},
            'top_values': self._ranked_values()[:self.config.top_values],
            'relationships': [
                {'entity': entity, 'bond': r.bond, 'trust': r.trust, 'interactions': r.interactions}
                for entity, r in self.relationships.items()
            ],
            'coherence': self.coherence,
            'self_awareness': self.self_awareness,
        }


class IdentityAggregator:
    """
    Registry of self-models keyed by owner.

    Args:
        config: Identity parameters
        rng: Generator for seeding value importances
        clock: Time source (seconds)
        bus: Telemetry bus
    """

    def __init__(
        self,
        config: Optional[IdentityConfig] = None,
        rng: Optional[np.random.Generator] = None,
        clock: Optional[Clock] = None,
        bus: Optional[TelemetryBus] = None,
    ):
        self.config = config or IdentityConfig()
        self.rng = rng if rng is not None else make_rng()
        self.clock = clock or SystemClock()
        self.bus = bus
        self.models: Dict[str, SelfModel] = {}

    def model(self, owner_id: str) -> SelfModel:
        """Self-model for an owner, created on first use."""
        model = self.models.get(owner_id)
        if model is None:
            model = self.models[owner_id] = SelfModel(owner_id, self.config, self.rng, self.clock)
            logger.info("Created self-model for %s", owner_id)
        return model

    def get(self, owner_id: str) -> Optional[SelfModel]:
        return self.models.get(owner_id)

    def integrate(self, owner_id: str, experience: Any) -> Dict[str, Any]:
        if not isinstance(experience, Experience):
            experience = Experience.from_dict(experience)
        result = self.model(owner_id).integrate(experience)
        if self.bus:
            self.bus.emit(TelemetryEvent.EXPERIENCE_INTEGRATED, owner_id=owner_id, **result)
        return result

    def reflect(self, owner_id: Optional[str] = None) -> Dict[str, List[str]]:
        """Reflect one self-model, or all of them. Returns insights per owner."""
        if owner_id is not None:
            targets = [self.models[owner_id]] if owner_id in self.models else []
        else:
            targets = list(self.models.values())

        results = {}
        for model in targets:
            insights = model.reflect()
            results[model.owner_id] = insights
            if self.bus:
                self.bus.emit(TelemetryEvent.REFLECTION_COMPLETED, owner_id=model.owner_id,
                              coherence=model.coherence, self_awareness=model.self_awareness,
                              insights=insights)
        return results

    def self_description(self, owner_id: str) -> Optional[Dict[str, Any]]:
        model = self.models.get(owner_id)
        return model.describe() if model else None

    def set_name(self, owner_id: str, name: str) -> Dict[str, Any]:
        model = self.model(owner_id)
        model.set_name(name)
        if self.bus:
            self.bus.emit(TelemetryEvent.IDENTITY_UPDATED, owner_id=owner_id, name=name)
        return model.describe()

    def insights(self, owner_id: str) -> List[str]:
        model = self.models.get(owner_id)
        return model.insights() if model else []

    def impact(self, owner_id: str, experience: Any) -> float:
        model = self.models.get(owner_id)
        if model is None:
            return 0.0
        if not isinstance(experience, Experience):
            experience = Experience.from_dict(experience)
        return model.impact(experience)

    def coherence(self, owner_id: Optional[str] = None) -> float:
        """Coherence of one owner, or the mean across owners."""
        if owner_id is not None:
            model = self.models.get(owner_id)
            return model.coherence if model else 0.0
        if not self.models:
            return 0.0
        return sum(m.coherence for m in self.models.values()) / len(self.models)

    def export_state(self) -> Dict[str, Any]:
        return {'models': self.models}

    def import_state(self, state: Dict[str, Any]):
        models = state.get('models', {})
        for model in models.values():
            model.config = self.config
            model.clock = self.clock
        self.models.update(models)
