# petmind - simulated pet cognition core
#
# Events become symbols, symbols become memories and patterns,
# reliable patterns become behavior loops, novelty drives curiosity,
# and everything folds into a persistent self-model.
#
# MODULES:
# ├── symbols.py       - Symbol encoder (sparse vectors + bindings)
# ├── memory.py        - Partitioned memory store
# ├── resonance.py     - Pattern resonance engine
# ├── crystallizer.py  - Behavior loops
# ├── curiosity.py     - Novelty and exploration
# ├── identity.py      - Self-models
# ├── scheduler.py     - Periodic maintenance sweeps
# ├── persistence.py   - JSON documents + dill snapshots
# └── pipeline.py      - CognitionSystem (the public API)

# =============================================================================
# PRIMARY EXPORTS: Cognition system
# =============================================================================

from .pipeline import (
    CognitionSystem,
    create_cognition,
    EventResult,
    Command,
)

from .config import (
    CognitionConfig,
    SymbolConfig,
    MemoryConfig,
    ResonanceConfig,
    CrystallizerConfig,
    CuriosityConfig,
    IdentityConfig,
    SchedulerConfig,
    create_config,
    load_config,
)

from .runtime import (
    SystemClock,
    ManualClock,
    make_rng,
)

from .telemetry import (
    TelemetryBus,
    TelemetryEvent,
    TelemetryRecord,
)

# =============================================================================
# COMPONENTS
# =============================================================================

from .symbols import (
    Symbol,
    SymbolEncoder,
)

from .memory import (
    MemoryKind,
    MemoryRecord,
    MemoryStore,
    ProceduralSkill,
)

from .eviction import (
    EvictionPolicy,
    ImportanceEviction,
    LRUEviction,
)

from .resonance import (
    Pattern,
    LearningResult,
    PatternResonanceEngine,
)

from .crystallizer import (
    LoopState,
    BehaviorLoop,
    LoopMatch,
    BehaviorCrystallizer,
)

from .curiosity import (
    Discovery,
    Exploration,
    CuriosityScheduler,
)

from .identity import (
    Experience,
    SelfModel,
    IdentityAggregator,
)

from .scheduler import (
    PeriodicTask,
    MaintenanceScheduler,
)

from .persistence import (
    MemoryArchive,
    StateSnapshot,
)

__version__ = "0.3.0"

__all__ = [
    # Cognition system
    'CognitionSystem',
    'create_cognition',
    'EventResult',
    'Command',

    # Configuration
    'CognitionConfig',
    'SymbolConfig',
    'MemoryConfig',
    'ResonanceConfig',
    'CrystallizerConfig',
    'CuriosityConfig',
    'IdentityConfig',
    'SchedulerConfig',
    'create_config',
    'load_config',

    # Runtime
    'SystemClock',
    'ManualClock',
    'make_rng',
    'TelemetryBus',
    'TelemetryEvent',
    'TelemetryRecord',

    # Symbols
    'Symbol',
    'SymbolEncoder',

    # Memory
    'MemoryKind',
    'MemoryRecord',
    'MemoryStore',
    'ProceduralSkill',
    'EvictionPolicy',
    'ImportanceEviction',
    'LRUEviction',

    # Patterns and loops
    'Pattern',
    'LearningResult',
    'PatternResonanceEngine',
    'LoopState',
    'BehaviorLoop',
    'LoopMatch',
    'BehaviorCrystallizer',

    # Curiosity
    'Discovery',
    'Exploration',
    'CuriosityScheduler',

    # Identity
    'Experience',
    'SelfModel',
    'IdentityAggregator',

    # Maintenance and persistence
    'PeriodicTask',
    'MaintenanceScheduler',
    'MemoryArchive',
    'StateSnapshot',
]
