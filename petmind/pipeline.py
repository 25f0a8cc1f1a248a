"""
Cognition Pipeline
==================

CognitionSystem wires the six components into one process:

    event -> symbols -> episodic memory -> pattern resonance
          -> crystallization (loops) -> curiosity -> identity

External callers (request handlers, the console) use the public API.
Every call becomes a typed command. Once start() has been called a
single consumer thread executes commands one at a time and runs due
maintenance sweeps between them, so component state has exactly one
writer. Without start(), calls run inline on the caller's thread.

Maintenance sweeps (see MaintenanceScheduler):
- cognition tick       awareness/curiosity/coherence state
- symbol decay         bindings fade, vectors get creative noise
- pattern decay        weak patterns are dropped
- loop maintenance     dormant loops decay, idle active loops expire
- curiosity            deferred explorations, decay, spikes, wonder
- exploration replay   queued explorations re-enter the pipeline
- memory maintenance   consolidation then forgetting
- reflection           self-models integrate their narrative
- checkpoint           memory documents and model snapshot
"""

import logging
import math
import queue
import threading
from concurrent.futures import Future
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from .config import CognitionConfig
from .crystallizer import BehaviorCrystallizer, infer_emotion
from .curiosity import CuriosityScheduler
from .identity import Experience, IdentityAggregator
from .memory import MemoryKind, MemoryRecord, MemoryStore
from .persistence import MemoryArchive, StateSnapshot
from .resonance import PatternResonanceEngine
from .runtime import Clock, SystemClock, spawn_rngs
from .scheduler import MaintenanceScheduler
from .symbols import SymbolEncoder
from .telemetry import TelemetryBus, TelemetryEvent

logger = logging.getLogger(__name__)


ANIMATIONS = {
    'feed': 'eating',
    'play': 'jumping',
    'pet': 'purring',
    'teach': 'listening',
}

VOCALIZATIONS = ['meow', 'purr', 'chirp', 'bark', 'growl']

OFFLINE_RESPONSES = {
    'greeting': [
        "Hello! I'm running in offline mode but still learning!",
        "Hi there! My AI connection is offline but I'm still here!",
        "Greetings! Running locally but happy to chat!",
    ],
    'play': [
        "*bounces excitedly* Let's play!",
        "*wags tail* I love playing!",
        "*does a little dance* Playtime is the best!",
    ],
    'feed': [
        "*nom nom nom* Delicious!",
        "*munches happily* Thank you for the food!",
        "*gobbles up the treat* Yummy!",
    ],
    'pet': [
        "*purrs contentedly* That feels nice!",
        "*leans into the petting* I love this!",
        "*closes eyes happily* So relaxing...",
    ],
    'default': [
        "*tilts head curiously*",
        "*looks at you with interest*",
        "*makes happy sounds*",
    ],
}

SOCIAL_ACTIONS = {'pet', 'feed', 'play', 'greet'}

# Payload keys that describe an event rather than being part of it
EVENT_META_KEYS = {'context', 'importance', 'tags', 'positive', 'negative', 'entity', 'with', 'novel'}

# Event fields that must be plain text once they reach the components
TEXT_FIELDS = ('action', 'entity', 'with', 'emotion', 'type', 'learned', 'concept')

# Response provider: (owner_id, action, context) -> text
ResponseProvider = Callable[[str, str, Dict[str, Any]], str]


def offline_intent(prompt: str) -> str:
    lower = prompt.lower()
    if 'hello' in lower or lower.startswith('hi'):
        return 'greeting'
    if 'play' in lower:
        return 'play'
    if 'feed' in lower or 'food' in lower:
        return 'feed'
    if 'pet' in lower or 'cuddle' in lower:
        return 'pet'
    return 'default'


def _text_value(value: Any) -> Optional[str]:
    if isinstance(value, (str, int, float)) and not isinstance(value, bool):
        return str(value)
    return None


def _parse_importance(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        importance = float(value)
    except (TypeError, ValueError):
        importance = math.nan
    if not math.isfinite(importance):
        logger.warning("Ignoring malformed importance %r, using the heuristic", value)
        return None
    return importance


def _parse_tags(value: Any) -> List[str]:
    if isinstance(value, str):
        return [value]
    if isinstance(value, (list, tuple, set)):
        return [str(tag) for tag in value if _text_value(tag) is not None]
    return []


def coerce_event(payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    Copy of an event payload whose control fields are safe to use.

    Fields that cannot be coerced are dropped with a warning, so a
    missing importance falls back to the heuristic.
    """
    fields = dict(payload)
    for name in TEXT_FIELDS:
        if name not in fields or fields[name] is None:
            continue
        text = _text_value(fields[name])
        if text is None:
            logger.warning("Dropping non-text %r field from event", name)
            del fields[name]
        else:
            fields[name] = text

    if 'importance' in fields:
        importance = _parse_importance(fields['importance'])
        if importance is None:
            del fields['importance']
        else:
            fields['importance'] = importance

    if 'tags' in fields:
        fields['tags'] = _parse_tags(fields['tags'])
    return fields


@dataclass
class EventResult:
    """What submit_event() reports back to the transport."""
    symbols: List[str]
    memory_id: str
    resonance: float
    learned: bool
    novel: bool = False
    pattern_id: Optional[str] = None
    loop_id: Optional[str] = None
    exploration_id: Optional[str] = None
    single_shot: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            'symbols': list(self.symbols),
            'memory_id': self.memory_id,
            'resonance': self.resonance,
            'learned': self.learned,
            'novel': self.novel,
            'pattern_id': self.pattern_id,
            'loop_id': self.loop_id,
            'exploration_id': self.exploration_id,
            'single_shot': self.single_shot,
        }


@dataclass
class Command:
    """A queued call for the consumer thread."""
    name: str
    args: tuple = ()
    kwargs: Dict[str, Any] = field(default_factory=dict)
    future: Future = field(default_factory=Future)


_STOP = Command(name='__stop__')


class CognitionSystem:
    """
    The complete cognition core for one or more pets.

    Args:
        config: CognitionConfig (defaults if None)
        clock: Time source in seconds (wall clock if None)
        response_provider: Optional external text generator; failures
            fall back to offline responses
        bus: Telemetry bus (one is created if None)
    """

    def __init__(
        self,
        config: Optional[CognitionConfig] = None,
        clock: Optional[Clock] = None,
        response_provider: Optional[ResponseProvider] = None,
        bus: Optional[TelemetryBus] = None,
    ):
        self.config = config or CognitionConfig()
        self.clock = clock or SystemClock()
        self.bus = bus or TelemetryBus(clock=self.clock)
        self.response_provider = response_provider

        (symbol_rng, loop_rng, curiosity_rng,
         identity_rng, self.rng) = spawn_rngs(self.config.seed, 5)

        self.archive: Optional[MemoryArchive] = None
        self.snapshots: Optional[StateSnapshot] = None
        if self.config.persist:
            self.archive = MemoryArchive(self.config.data_dir, background=self.config.background_writes)
            self.snapshots = StateSnapshot()

        self.symbols = SymbolEncoder(self.config.symbols, rng=symbol_rng, clock=self.clock, bus=self.bus)
        self.memory = MemoryStore(self.config.memory, clock=self.clock, bus=self.bus, archive=self.archive)
        self.patterns = PatternResonanceEngine(self.config.resonance, clock=self.clock, bus=self.bus)
        self.loops = BehaviorCrystallizer(self.config.crystallizer, rng=loop_rng, clock=self.clock, bus=self.bus)
        self.curiosity = CuriosityScheduler(self.config.curiosity, rng=curiosity_rng, clock=self.clock, bus=self.bus)
        self.identity = IdentityAggregator(self.config.identity, rng=identity_rng, clock=self.clock, bus=self.bus)

        self.cognitive_state = {
            'awareness': 0.5,
            'coherence': 0.7,
            'curiosity': self.curiosity.curiosity_level,
            'identity': 0.8,
            'learning_rate': self.patterns.learning_rate,
            'memory_consolidation': 0.65,
        }

        self.scheduler = MaintenanceScheduler(start=self.clock())
        self._register_tasks()

        self._commands: "queue.Queue[Command]" = queue.Queue()
        self._consumer: Optional[threading.Thread] = None
        self._running = threading.Event()
        self._closed = False

        if self.config.persist:
            self.load()

        logger.info("Cognition system ready (persist=%s, seed=%s)", self.config.persist, self.config.seed)

    def _register_tasks(self):
        intervals = self.config.scheduler
        self.scheduler.add('cognition_tick', intervals.cognition_tick, self._tick)
        self.scheduler.add('symbol_decay', intervals.symbol_decay, self.symbols.decay)
        self.scheduler.add('pattern_decay', intervals.pattern_decay, self.patterns.decay)
        self.scheduler.add('loop_maintenance', intervals.loop_maintenance, self.loops.decay)
        self.scheduler.add('curiosity', intervals.curiosity, self.curiosity.sweep)
        self.scheduler.add('exploration_replay', intervals.exploration_replay, self._replay_exploration)
        self.scheduler.add('memory_maintenance', intervals.memory_maintenance, self._maintain_memory)
        self.scheduler.add('reflection', intervals.reflection, self.identity.reflect)
        if self.config.persist:
            self.scheduler.add('checkpoint', intervals.checkpoint, self._checkpoint)

    # ==================================================================
    # COMMAND DISPATCH
    # ==================================================================

    def start(self):
        """Start the single consumer thread."""
        if self._consumer is not None:
            return
        self._running.set()
        self._consumer = threading.Thread(target=self._consume, name='petmind-cognition', daemon=True)
        self._consumer.start()
        logger.info("Cognition dispatcher started")

    @property
    def running(self) -> bool:
        return self._consumer is not None

    def dispatch(self, name: str, *args, **kwargs) -> Future:
        """Queue a command. Runs inline when the dispatcher is not started."""
        command = Command(name=name, args=args, kwargs=kwargs)
        if self._consumer is None or threading.current_thread() is self._consumer:
            self._execute(command)
        else:
            self._commands.put(command)
        return command.future

    def _call(self, name: str, *args, **kwargs):
        return self.dispatch(name, *args, **kwargs).result()

    def _execute(self, command: Command):
        handler = getattr(self, f"_{command.name}", None)
        if handler is None:
            command.future.set_exception(AttributeError(f"Unknown command: {command.name}"))
            return
        try:
            command.future.set_result(handler(*command.args, **command.kwargs))
        except Exception as e:
            logger.exception("Command %s failed", command.name)
            command.future.set_exception(e)

    def _consume(self):
        wait = self.config.scheduler.idle_wait
        while self._running.is_set():
            try:
                command = self._commands.get(timeout=wait)
            except queue.Empty:
                command = None

            if command is _STOP:
                break
            if command is not None:
                self._execute(command)
            self.maintain()

    def maintain(self) -> List[str]:
        """Run every due maintenance sweep. Returns the names that ran."""
        return self.scheduler.run_due(self.clock())

    def shutdown(self):
        """Stop the dispatcher and flush state to storage (best effort)."""
        if self._closed:
            return
        self._closed = True

        if self._consumer is not None:
            self._running.clear()
            self._commands.put(_STOP)
            self._consumer.join(timeout=5.0)
            self._consumer = None

            # Anything queued after the stop marker still gets an answer
            while True:
                try:
                    command = self._commands.get_nowait()
                except queue.Empty:
                    break
                if command is not _STOP:
                    self._execute(command)

        if self.config.persist:
            self._checkpoint()
            if self.archive is not None:
                self.archive.close()
        logger.info("Cognition system shut down")

    # ==================================================================
    # INGRESS
    # ==================================================================

    def submit_event(self, owner_id: str, payload: Any) -> EventResult:
        """Process one interaction event for an owner."""
        return self._call('submit_event', owner_id, payload)

    def process_perception(self, owner_id: str, perception: Dict[str, Any]) -> EventResult:
        """Process a sensor-fusion perception tick (objects and sounds)."""
        return self._call('process_perception', owner_id, perception)

    def _submit_event(self, owner_id: str, payload: Any) -> EventResult:
        structured = isinstance(payload, dict)
        fields = coerce_event(payload) if structured else {}
        if structured:
            symbols = self.symbols.encode({k: v for k, v in payload.items() if k not in EVENT_META_KEYS})
        else:
            symbols = self.symbols.encode(payload)
        concepts = [s.concept for s in symbols]

        record = self.memory.store(MemoryRecord(
            kind=MemoryKind.EPISODIC,
            content={'input': payload, 'symbols': concepts},
            owner_id=owner_id,
            importance=fields.get('importance'),
            action=fields.get('action'),
            features=concepts,
            emotion=fields.get('emotion'),
            context=fields.get('context'),
            tags=list(fields.get('tags') or []),
            novelty=self.curiosity.novelty(concepts),
        ))

        learning = self.patterns.learn(concepts, owner_id=owner_id)
        if learning.pattern_id is not None and isinstance(record.content, dict):
            record.content['pattern_id'] = learning.pattern_id

        context = fields.get('context') if isinstance(fields.get('context'), dict) else None
        loop_id = self.loops.consider(learning.pattern_id, learning.pattern, learning.resonance, context=context)

        exploration = None
        if self.curiosity.is_novel(concepts):
            exploration = self.curiosity.explore(symbols)

        self.identity.integrate(owner_id, self._experience(fields if structured else payload, learning.is_novel))

        logger.debug("Event for %s: %s (resonance %.2f)", owner_id, concepts, learning.resonance)
        return EventResult(
            symbols=concepts,
            memory_id=record.id,
            resonance=learning.resonance,
            learned=learning.learned,
            novel=learning.is_novel,
            pattern_id=learning.pattern_id,
            loop_id=loop_id,
            exploration_id=exploration.id if exploration else None,
            single_shot=learning.single_shot,
        )

    def _experience(self, payload: Any, novel: bool) -> Experience:
        if not isinstance(payload, dict):
            return Experience(content=str(payload), novel=novel)

        experience = Experience.from_dict(payload)
        action = payload.get('action')
        if action:
            experience.interaction = True
            experience.content = experience.content or action
            experience.social = experience.social or action in SOCIAL_ACTIONS
            experience.play = experience.play or action == 'play'
            experience.learning = experience.learning or action == 'teach'
            if action == 'teach' and not experience.type:
                experience.type = 'learning'
        experience.novel = experience.novel or novel
        return experience

    def _process_perception(self, owner_id: str, perception: Dict[str, Any]) -> EventResult:
        perception = perception if isinstance(perception, dict) else {}
        symbols = self.symbols.encode_perception(perception)
        concepts = [s.concept for s in symbols]

        record = self.memory.store(MemoryRecord(
            kind=MemoryKind.EPISODIC,
            content={'symbols': concepts, 'metadata': perception.get('metadata')},
            owner_id=owner_id,
            features=concepts,
            novelty=self.curiosity.novelty(concepts),
            source='perception',
        ))

        exploration = None
        if self.curiosity.is_novel(symbols):
            exploration = self.curiosity.explore(symbols)

        return EventResult(
            symbols=concepts,
            memory_id=record.id,
            resonance=0.0,
            learned=False,
            exploration_id=exploration.id if exploration else None,
        )

    # ==================================================================
    # FEEDBACK AND RESPONSES
    # ==================================================================

    def report_outcome(self, loop_id: str, success: bool) -> Optional[Dict[str, Any]]:
        """Reinforce or weaken a loop. Unknown loop ids return None."""
        return self._call('report_outcome', loop_id, success)

    def respond(self, owner_id: str, action: str, prompt: Optional[str] = None) -> Dict[str, Any]:
        """Build a response to an owner action using loops, then text."""
        return self._call('respond', owner_id, action, prompt)

    def _report_outcome(self, loop_id: str, success: bool) -> Optional[Dict[str, Any]]:
        loop = self.loops.reinforce(loop_id, bool(success))
        if loop is None:
            return None
        self.memory.store(MemoryRecord(
            kind=MemoryKind.PROCEDURAL,
            action=loop.category,
            content={'loop_id': loop_id, 'success': bool(success)},
            features=list(loop.trigger_features),
            success=bool(success),
            source='feedback',
        ))
        return loop.to_dict()

    def _respond(self, owner_id: str, action: str, prompt: Optional[str] = None) -> Dict[str, Any]:
        concepts = [s.concept for s in self.symbols.encode({'action': action})]
        memories = self.memory.retrieve_relevant(concepts)
        best = self.patterns.find_best_pattern(concepts, memories)

        matches = self.loops.resonate({'action': action})
        loop_response = None
        if matches:
            loop_response = self.loops.trigger(matches[0].loop_id)
        else:
            relevant = self.loops.relevant_loop(action)
            if relevant is not None:
                loop_response = self.loops.trigger(relevant.id)

        model = self.identity.get(owner_id)
        context = {
            'action': action,
            'prompt': prompt,
            'name': model.name if model else None,
            'loop': loop_response,
            'memories': len(memories),
        }

        text, provider = None, 'offline'
        if self.response_provider is not None:
            try:
                text = self.response_provider(owner_id, action, context)
                provider = 'external'
            except Exception as e:
                logger.warning("Response provider failed, using offline response: %s", e)
                text = None
        if not text:
            text = self._offline_text(prompt or action)
            provider = 'offline'

        emotion = loop_response['emotion'] if loop_response else infer_emotion(concepts)
        return {
            'action': loop_response['action'] if loop_response else 'respond',
            'text': text,
            'emotion': emotion,
            'animation': ANIMATIONS.get(action, 'idle'),
            'vocalization': VOCALIZATIONS[int(self.rng.integers(len(VOCALIZATIONS)))],
            'loop': loop_response,
            'pattern_id': best[0] if best else None,
            'provider': provider,
        }

    def _offline_text(self, prompt: str) -> str:
        options = OFFLINE_RESPONSES[offline_intent(prompt)]
        return options[int(self.rng.integers(len(options)))]

    # ==================================================================
    # QUERIES
    # ==================================================================

    def get_recent_memories(self, owner_id: Optional[str] = None, limit: int = 10) -> List[Dict[str, Any]]:
        return self._call('get_recent_memories', owner_id, limit)

    def query_memories(self, filters: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """
        Filter memories. A 'query' key performs a ranked retrieval
        (with retrieval bookkeeping); otherwise the filter is read-only.
        """
        return self._call('query_memories', filters)

    def get_self_description(self, owner_id: str) -> Optional[Dict[str, Any]]:
        return self._call('get_self_description', owner_id)

    def get_metrics(self) -> Dict[str, Any]:
        return self._call('get_metrics')

    def _get_recent_memories(self, owner_id: Optional[str], limit: int) -> List[Dict[str, Any]]:
        return [r.to_dict() for r in self.memory.recent(owner_id, limit)]

    def _query_memories(self, filters: Optional[Dict[str, Any]]) -> List[Dict[str, Any]]:
        filters = dict(filters or {})
        if 'query' in filters:
            return [r.to_dict() for r in self.memory.retrieve(filters['query'], limit=filters.get('limit'))]
        return [r.to_dict() for r in self.memory.query(filters)]

    def _get_self_description(self, owner_id: str) -> Optional[Dict[str, Any]]:
        return self.identity.self_description(owner_id)

    def _get_metrics(self) -> Dict[str, Any]:
        return {
            'symbols': {
                'symbols': self.symbols.symbol_count,
                'bindings': self.symbols.binding_count,
            },
            'memory': {
                'memories': self.memory.count(),
                'retention': self.memory.stats['retention_rate'],
                **self.memory.get_stats(),
            },
            'patterns': {
                'patterns': len(self.patterns.patterns),
                'learning_rate': self.patterns.learning_rate,
                'single_shot_successes': self.patterns.stats['single_shot_successes'],
            },
            'curiosity': {
                'curiosity': self.curiosity.curiosity_level,
                'explorations': self.curiosity.stats['total_explorations'],
                'discoveries': len(self.curiosity.known),
            },
            'loops': {
                'crystallized': len(self.loops.loops),
                'active': len(self.loops.active),
                'average_strength': self.loops.average_strength(),
            },
            'identity': {
                'owners': len(self.identity.models),
                'coherence': self.identity.coherence(),
            },
            'state': dict(self.cognitive_state),
            'telemetry': {event.value: count for event, count in self.bus.counts.items()},
        }

    # ==================================================================
    # CONTROL
    # ==================================================================

    def set_parameter(self, name: str, value: float) -> Optional[Dict[str, Any]]:
        """Update a cognitive parameter. Unknown names return None."""
        return self._call('set_parameter', name, value)

    def set_name(self, owner_id: str, name: str) -> Dict[str, Any]:
        return self._call('set_name', owner_id, name)

    def _set_parameter(self, name: str, value: float) -> Optional[Dict[str, Any]]:
        if name == 'learning_rate':
            self.cognitive_state['learning_rate'] = self.patterns.set_learning_rate(value)
        elif name == 'curiosity':
            self.cognitive_state['curiosity'] = self.curiosity.set_curiosity(value)
        elif name in self.cognitive_state:
            self.cognitive_state[name] = max(0.0, min(1.0, float(value)))
        else:
            logger.warning("Unknown cognitive parameter: %s", name)
            return None
        return dict(self.cognitive_state)

    def _set_name(self, owner_id: str, name: str) -> Dict[str, Any]:
        return self.identity.set_name(owner_id, name)

    # ==================================================================
    # MAINTENANCE TASKS
    # ==================================================================

    def _tick(self):
        activity = self.symbols.get_recent_activity()
        state = self.cognitive_state
        state['awareness'] = min(1.0, state['awareness'] * 0.99 + activity * 0.01)
        state['curiosity'] = self.curiosity.curiosity_level
        if self.identity.models:
            state['coherence'] = self.identity.coherence()
            state['identity'] = state['coherence']
        state['learning_rate'] = self.patterns.learning_rate
        self.bus.emit(TelemetryEvent.COGNITION_TICK, state=dict(state))

    def _replay_exploration(self):
        """Feed one queued exploration back through the pipeline."""
        exploration = self.curiosity.pop_exploration()
        if exploration is None:
            return None
        symbols = self.symbols.encode(exploration.concepts)
        concepts = [s.concept for s in symbols]
        learning = self.patterns.learn(concepts)
        self.memory.store(MemoryRecord(
            kind=MemoryKind.GENERAL,
            content={
                'exploration': exploration.id,
                'depth': exploration.depth,
                'category': exploration.category,
                'pattern_id': learning.pattern_id,
            },
            features=concepts,
            source='exploration',
        ))
        return learning

    def _maintain_memory(self):
        self.memory.consolidate()

        learning = self.patterns.consolidate(self.memory.recent(limit=10))
        if learning is not None and learning.pattern is not None:
            self.loops.consider(learning.pattern_id, learning.pattern, learning.resonance)

        self.memory.forget()
        self.cognitive_state['memory_consolidation'] = self.memory.stats['retention_rate']

    # ==================================================================
    # PERSISTENCE
    # ==================================================================

    @property
    def snapshot_path(self) -> Path:
        return Path(self.config.data_dir) / self.config.snapshot_name

    def export_state(self) -> Dict[str, Any]:
        return {
            'symbols': self.symbols.export_state(),
            'patterns': self.patterns.export_state(),
            'loops': self.loops.export_state(),
            'curiosity': self.curiosity.export_state(),
            'identity': self.identity.export_state(),
            'cognitive_state': dict(self.cognitive_state),
        }

    def import_state(self, state: Dict[str, Any]):
        self.symbols.import_state(state.get('symbols', {}))
        self.patterns.import_state(state.get('patterns', {}))
        self.loops.import_state(state.get('loops', {}))
        self.curiosity.import_state(state.get('curiosity', {}))
        self.identity.import_state(state.get('identity', {}))
        self.cognitive_state.update(state.get('cognitive_state', {}))

    def checkpoint(self) -> bool:
        return self._call('checkpoint')

    def _checkpoint(self) -> bool:
        ok = self.memory.checkpoint()
        if self.snapshots is not None:
            ok = self.snapshots.save(self.export_state(), filepath=str(self.snapshot_path)) is not None and ok
        return ok

    def load(self) -> int:
        """Restore memory documents and the model snapshot. Missing files mean start empty."""
        loaded = self.memory.load()
        if self.snapshots is not None:
            state = self.snapshots.load(str(self.snapshot_path))
            if state is not None:
                try:
                    self.import_state(state)
                except (AttributeError, TypeError, KeyError) as e:
                    logger.error("Ignoring incompatible state snapshot: %s", e)
        return loaded

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.shutdown()
        return False


def create_cognition(
    clock: Optional[Clock] = None,
    response_provider: Optional[ResponseProvider] = None,
    **overrides,
) -> CognitionSystem:
    """
    Factory for a CognitionSystem.

    Keyword overrides are passed to create_config, e.g.
    create_cognition(seed=7, persist=False, memory__max_episodic=200).
    """
    from .config import create_config
    return CognitionSystem(create_config(**overrides), clock=clock, response_provider=response_provider)
