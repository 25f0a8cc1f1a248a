"""
Cognition Configuration

All tunables for the cognition core live here, grouped per component.
Every field has a working default, so `CognitionConfig()` is a complete
configuration. Use create_config(**overrides) to customize individual
parameters, or load_config(path) to read them from a JSON file.
"""

import json
import logging
from dataclasses import dataclass, field, fields, asdict, is_dataclass
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


@dataclass
class SymbolConfig:
    """Symbol encoder parameters."""
    dimensions: int = 512
    sparsity: float = 0.05              # Fraction of active vector slots
    binding_increment: float = 0.1      # Per co-occurrence
    binding_floor: float = 0.01         # Bindings below this are removed
    cross_modal_binding: float = 0.5    # Initial visual<->audio binding
    decay_rate: float = 0.99
    noise_level: float = 0.01           # Chance per element of creative noise
    noise_magnitude: float = 0.05       # Noise drawn from [-m, m]
    similarity_threshold: float = 0.7
    activity_buffer_size: int = 100
    max_symbols: int = 2000             # Base vocabulary is never evicted
    activation_boost: float = 0.3       # Added per re-encounter, capped at 1.0


@dataclass
class MemoryConfig:
    """Memory store capacities, consolidation and forgetting."""
    max_episodic: int = 1000
    max_semantic: int = 500
    max_general: int = 1000
    max_procedural_per_action: int = 50
    consolidation_batch: int = 50
    consolidation_threshold: float = 0.7
    importance_decay: float = 0.99
    forgetting_floor: float = 0.1
    staleness_window: float = 86400.0   # 24 hours
    persist_threshold: float = 0.5
    owner_document_cap: int = 100
    episodic_search_limit: int = 10
    semantic_search_limit: int = 5
    semantic_merge_increment: float = 0.1


@dataclass
class ResonanceConfig:
    """Pattern resonance engine parameters."""
    resonance_threshold: float = 0.5    # Inclusive
    base_strength: float = 0.5
    novelty_bonus: float = 0.3
    reinforcement_factor: float = 1.2
    link_floor: float = 0.3
    link_propagation: float = 0.1
    pattern_decay: float = 0.995
    strength_floor: float = 0.01
    single_shot_bar: float = 0.8
    hierarchy_depth: int = 5
    max_instances: int = 50
    max_patterns: int = 500
    max_level_patterns: int = 200
    max_preferences: int = 100          # Per-owner feature counts kept
    learning_rate: float = 0.15
    seed_base_patterns: bool = True


@dataclass
class CrystallizerConfig:
    """Behavior loop crystallization and maintenance."""
    crystallization_strength: float = 0.7
    candidate_resonance: float = 0.5
    min_instances: int = 2
    seed_strength: float = 0.8
    reinforcement_bonus: float = 0.1
    failure_floor: float = 0.1
    decay_rate: float = 0.999
    removal_floor: float = 0.01
    max_active_loops: int = 10
    active_window: float = 30.0
    recency_window: float = 60.0
    recency_boost: float = 1.1
    trigger_weight: float = 0.6
    context_weight: float = 0.2
    match_threshold: float = 0.6
    history_size: int = 100
    seed_core_behaviors: bool = True


@dataclass
class CuriosityConfig:
    """Curiosity levels, exploration queue and discoveries."""
    initial_curiosity: float = 0.6
    curiosity_decay: float = 0.99
    curiosity_floor: float = 0.2
    curiosity_boost: float = 0.15
    novelty_threshold: float = 0.7
    exploration_depth: int = 3
    cooldown: float = 5.0
    max_queue_size: int = 20
    recursion_floor: float = 0.3
    recursion_delay: float = 1.0
    spike_chance: float = 0.05
    spike_amount: float = 0.2
    stagnation_level: float = 0.3
    initial_familiarity: float = 0.1
    familiarity_step: float = 0.1
    max_discoveries: int = 2000
    history_size: int = 100


@dataclass
class IdentityConfig:
    """Self-model parameters."""
    narrative_max_length: int = 100
    value_decay: float = 0.995
    significance_threshold: float = 0.5
    drift_after: float = 60.0           # Seconds without reinforcement
    drift_rate: float = 0.01
    baseline: float = 0.5
    stability_step: float = 0.001       # Per integration touch
    reflection_stability_step: float = 0.01
    top_values: int = 3
    recent_emotions: int = 10


@dataclass
class SchedulerConfig:
    """Intervals (seconds) of the periodic maintenance sweeps."""
    cognition_tick: float = 0.1
    symbol_decay: float = 1.0
    pattern_decay: float = 5.0
    loop_maintenance: float = 5.0
    curiosity: float = 2.0
    memory_maintenance: float = 30.0
    reflection: float = 10.0
    exploration_replay: float = 2.0
    checkpoint: float = 300.0
    idle_wait: float = 0.05             # Dispatcher wait between queue polls


@dataclass
class CognitionConfig:
    """
    Configuration for the whole cognition core.

    Component sections are plain dataclasses; top-level fields control
    persistence and reproducibility.
    """
    symbols: SymbolConfig = field(default_factory=SymbolConfig)
    memory: MemoryConfig = field(default_factory=MemoryConfig)
    resonance: ResonanceConfig = field(default_factory=ResonanceConfig)
    crystallizer: CrystallizerConfig = field(default_factory=CrystallizerConfig)
    curiosity: CuriosityConfig = field(default_factory=CuriosityConfig)
    identity: IdentityConfig = field(default_factory=IdentityConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)

    data_dir: str = "./data/memories"
    snapshot_name: str = "cognition.state"
    persist: bool = True
    background_writes: bool = True
    seed: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CognitionConfig':
        config = cls()
        for key, value in (data or {}).items():
            _apply_override(config, key, value)
        return config


SECTIONS = ('symbols', 'memory', 'resonance', 'crystallizer',
            'curiosity', 'identity', 'scheduler')


def _apply_override(config: CognitionConfig, key: str, value: Any):
    """Apply one override. Keys are 'name', 'section.name' or 'section__name'."""
    if key in SECTIONS and isinstance(value, dict):
        for sub_key, sub_value in value.items():
            _apply_override(config, f"{key}.{sub_key}", sub_value)
        return

    parts = key.replace('__', '.').split('.')
    target: Any = config
    for part in parts[:-1]:
        target = getattr(target, part, None)
        if target is None or not is_dataclass(target):
            logger.warning("Ignoring unknown config key: %s", key)
            return

    name = parts[-1]
    known = {f.name for f in fields(target)}
    if name not in known:
        logger.warning("Ignoring unknown config key: %s", key)
        return
    setattr(target, name, value)


def create_config(**overrides) -> CognitionConfig:
    """
    Build a configuration with overrides.

    Example:
        create_config(seed=7, memory__max_episodic=50, persist=False)
    """
    config = CognitionConfig()
    for key, value in overrides.items():
        _apply_override(config, key, value)
    return config


def load_config(path: str, **overrides) -> CognitionConfig:
    """Load configuration from a JSON file. A missing file yields defaults."""
    path = Path(path)
    data: Dict[str, Any] = {}
    if path.exists():
        try:
            with open(path) as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.error("Failed to read config %s: %s", path, e)
            data = {}
    else:
        logger.info("Config file %s not found, using defaults", path)

    config = CognitionConfig.from_dict(data)
    for key, value in overrides.items():
        _apply_override(config, key, value)
    return config
