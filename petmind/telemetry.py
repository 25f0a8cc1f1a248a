"""
Telemetry Bus

Fire-and-forget notifications for the transport layer (dashboards,
websocket pushes). Telemetry is not part of the cognition contract:
listeners can fail or be absent without affecting processing.
"""

import logging
from collections import defaultdict, deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Deque, Dict, List, Optional

logger = logging.getLogger(__name__)


class TelemetryEvent(Enum):
    """Events emitted by the cognition core."""
    SYMBOLS_ENCODED = "symbols_encoded"
    MEMORY_STORED = "memory_stored"
    MEMORY_RETRIEVED = "memory_retrieved"
    MEMORY_CONSOLIDATED = "memory_consolidated"
    MEMORIES_FORGOTTEN = "memories_forgotten"
    PATTERN_LEARNED = "pattern_learned"
    NOVEL_PATTERN = "novel_pattern_learned"
    SINGLE_SHOT = "single_shot_success"
    LOOP_CRYSTALLIZED = "loop_crystallized"
    LOOP_TRIGGERED = "loop_triggered"
    LOOP_REINFORCED = "loop_reinforced"
    LOOP_WEAKENED = "loop_weakened"
    LOOP_REMOVED = "loop_removed"
    LOOPS_MERGED = "loops_merged"
    CURIOSITY_TRIGGERED = "curiosity_triggered"
    CURIOSITY_SPIKE = "curiosity_spike"
    DISCOVERY_MADE = "new_discovery"
    WONDER_GENERATED = "wonder_generated"
    EXPERIENCE_INTEGRATED = "experience_integrated"
    IDENTITY_UPDATED = "identity_update"
    REFLECTION_COMPLETED = "self_reflection"
    COGNITION_TICK = "cognition"


@dataclass
class TelemetryRecord:
    event: TelemetryEvent
    payload: Dict[str, Any] = field(default_factory=dict)
    timestamp: float = 0.0


Listener = Callable[[TelemetryRecord], None]


class TelemetryBus:
    """
    Publish/subscribe hub with a small replay buffer.

    Subscribing with event=None receives every event.
    """

    def __init__(self, clock: Optional[Callable[[], float]] = None, history_size: int = 200):
        self._clock = clock
        self._listeners: Dict[Optional[TelemetryEvent], List[Listener]] = defaultdict(list)
        self.history: Deque[TelemetryRecord] = deque(maxlen=history_size)
        self.counts: Dict[TelemetryEvent, int] = defaultdict(int)

    def subscribe(self, listener: Listener, event: Optional[TelemetryEvent] = None):
        self._listeners[event].append(listener)

    def unsubscribe(self, listener: Listener, event: Optional[TelemetryEvent] = None):
        if listener in self._listeners.get(event, []):
            self._listeners[event].remove(listener)

    def emit(self, event: TelemetryEvent, **payload):
        record = TelemetryRecord(
            event=event,
            payload=payload,
            timestamp=self._clock() if self._clock else 0.0,
        )
        self.history.append(record)
        self.counts[event] += 1

        for listener in self._listeners.get(event, []) + self._listeners.get(None, []):
            try:
                listener(record)
            except Exception:
                logger.exception("Telemetry listener failed for %s", event.value)

    def recent(self, event: Optional[TelemetryEvent] = None, limit: int = 20) -> List[TelemetryRecord]:
        records = [r for r in self.history if event is None or r.event == event]
        return records[-limit:]

    def clear(self):
        self.history.clear()
        self.counts.clear()
