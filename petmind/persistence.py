"""
Cognition Persistence Module

Two layers of durable state:

- MemoryArchive: plain JSON documents under a data directory
  (one "<ownerId>.json" per owner plus global "episodic.json" and
  "semantic.json"). Owner documents are written fire-and-forget by a
  background writer thread.
- StateSnapshot: full object graph of the learned models (patterns,
  loops, discoveries, symbol space, self-models) using dill, with
  rotating backups and a metadata sidecar.

Persistence is best-effort everywhere: failures are logged and the
in-memory state stays authoritative. Missing files mean "start empty".
"""

import json
import logging
import os
import platform
import queue
import re
import threading
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import dill

logger = logging.getLogger(__name__)


EPISODIC_DOCUMENT = 'episodic.json'
SEMANTIC_DOCUMENT = 'semantic.json'
RESERVED_DOCUMENTS = {EPISODIC_DOCUMENT, SEMANTIC_DOCUMENT}


def _write_json(path: Path, payload: Any):
    """Write via a temp file so readers never see half a document."""
    tmp_path = path.with_suffix(path.suffix + '.tmp')
    with open(tmp_path, 'w') as f:
        json.dump(payload, f, indent=2, default=str)
    os.replace(tmp_path, path)


class BackgroundWriter:
    """
    Single worker thread draining a queue of (path, payload) writes.

    With background=False writes happen inline, which keeps tests
    deterministic.
    """

    _STOP = object()

    def __init__(self, background: bool = True):
        self.background = background
        self.failures = 0
        self.writes = 0
        self._queue: "queue.Queue" = queue.Queue()
        self._thread: Optional[threading.Thread] = None
        if background:
            self._thread = threading.Thread(target=self._run, name='petmind-writer', daemon=True)
            self._thread.start()

    def submit(self, path: Path, payload: Any):
        # Detach from live records before the payload crosses threads
        try:
            payload = json.loads(json.dumps(payload, default=str))
        except (TypeError, ValueError) as e:
            self.failures += 1
            logger.error("Cannot serialize document for %s: %s", path, e)
            return

        if self.background and self._thread is not None:
            self._queue.put((path, payload))
        else:
            self._write(path, payload)

    def _write(self, path: Path, payload: Any):
        try:
            _write_json(path, payload)
            self.writes += 1
        except Exception:
            self.failures += 1
            logger.exception("Failed to persist %s", path)

    def _run(self):
        while True:
            item = self._queue.get()
            try:
                if item is self._STOP:
                    return
                self._write(*item)
            finally:
                self._queue.task_done()

    def flush(self):
        """Block until every queued write has been attempted."""
        if self._thread is not None:
            self._queue.join()

    def stop(self):
        if self._thread is not None:
            self._queue.put(self._STOP)
            self._thread.join(timeout=5.0)
            self._thread = None


@dataclass
class ArchiveContents:
    episodic: List[Dict[str, Any]] = field(default_factory=list)
    semantic: List[Tuple[str, Dict[str, Any]]] = field(default_factory=list)
    owners: Dict[str, List[Dict[str, Any]]] = field(default_factory=dict)


class MemoryArchive:
    """JSON document layout for memory records."""

    def __init__(self, data_dir: str, background: bool = True):
        self.data_dir = Path(data_dir)
        self.writer = BackgroundWriter(background=background)
        self._ready = False

    def _ensure_directory(self) -> bool:
        if self._ready:
            return True
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            self._ready = True
        except OSError as e:
            logger.error("Failed to create persistence directory %s: %s", self.data_dir, e)
        return self._ready

    def owner_path(self, owner_id: str) -> Path:
        safe = re.sub(r'[^A-Za-z0-9_.-]', '_', str(owner_id)) or 'default'
        filename = f"{safe}.json"
        if filename in RESERVED_DOCUMENTS:
            filename = f"owner_{filename}"
        return self.data_dir / filename

    def load(self) -> ArchiveContents:
        contents = ArchiveContents()
        if not self.data_dir.exists():
            logger.info("No existing memories found at %s, starting fresh", self.data_dir)
            return contents

        for path in sorted(self.data_dir.glob('*.json')):
            # Snapshot sidecars share the directory
            if path.name.endswith('.meta.json'):
                continue
            data = self._read(path)
            if data is None:
                continue
            if path.name == EPISODIC_DOCUMENT:
                contents.episodic = [d for d in data if isinstance(d, dict)]
            elif path.name == SEMANTIC_DOCUMENT:
                contents.semantic = [
                    (entry['key'], entry['value']) for entry in data
                    if isinstance(entry, dict) and 'key' in entry and isinstance(entry.get('value'), dict)
                ]
            else:
                docs = [d for d in data if isinstance(d, dict)]
                owner_id = docs[0].get('owner_id', path.stem) if docs else path.stem
                contents.owners[str(owner_id)] = docs
        return contents

    def _read(self, path: Path) -> Optional[List[Any]]:
        try:
            with open(path) as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning("Skipping unreadable memory document %s: %s", path, e)
            return None
        if not isinstance(data, list):
            logger.warning("Skipping memory document %s: expected a list", path)
            return None
        return data

    def write_owner(self, owner_id: str, documents: List[Dict[str, Any]]):
        """Fire-and-forget write of one owner's document."""
        if self._ensure_directory():
            self.writer.submit(self.owner_path(owner_id), documents)

    def checkpoint(self, episodic: List[Dict[str, Any]], semantic: List[Tuple[str, Dict[str, Any]]]) -> bool:
        """Write the two global documents and wait for all pending writes."""
        if not self._ensure_directory():
            return False
        failures_before = self.writer.failures
        self.writer.submit(self.data_dir / EPISODIC_DOCUMENT, episodic)
        self.writer.submit(
            self.data_dir / SEMANTIC_DOCUMENT,
            [{'key': key, 'value': value} for key, value in semantic],
        )
        self.writer.flush()
        return self.writer.failures == failures_before

    def close(self):
        self.writer.flush()
        self.writer.stop()


class StateSnapshot:
    """
    Saves and loads learned model state with dill.

    Features:
    - Full object graph serialization (dataclasses, numpy arrays, sets)
    - Up to max_backups previous snapshots kept as .backup1 (newest) ...
    - Metadata sidecar for inspection without unpickling
    """

    VERSION = "1.0"

    def __init__(self, max_backups: int = 3):
        self.max_backups = max_backups
        self._save_count = 0

    def save(self, state: Dict[str, Any], filepath: str, create_backup: bool = True) -> Optional[str]:
        """
        Save a state dictionary.

        Returns:
            Path to the saved file, or None if saving failed
        """
        filepath = Path(filepath)
        try:
            filepath.parent.mkdir(parents=True, exist_ok=True)
            if create_backup and filepath.exists():
                self._rotate_backups(filepath)
        except OSError as e:
            logger.error("Failed to prepare snapshot %s: %s", filepath, e)
            return None

        save_data = {
            'version': self.VERSION,
            'saved_at': datetime.now().isoformat(),
            'python_version': platform.python_version(),
            'save_count': self._save_count,
            'state': state,
        }

        try:
            with open(filepath, 'wb') as f:
                dill.dump(save_data, f, protocol=dill.HIGHEST_PROTOCOL)
        except (OSError, TypeError, AttributeError, dill.PicklingError) as e:
            logger.error("Failed to save state snapshot %s: %s", filepath, e)
            return None

        self._save_count += 1

        meta_path = filepath.with_suffix('.meta.json')
        try:
            with open(meta_path, 'w') as f:
                json.dump({
                    'version': save_data['version'],
                    'saved_at': save_data['saved_at'],
                    'save_count': self._save_count,
                    'sections': sorted(state.keys()),
                    'file_size_bytes': os.path.getsize(filepath),
                }, f, indent=2)
        except OSError as e:
            logger.warning("Failed to write snapshot metadata %s: %s", meta_path, e)

        logger.info("Saved state snapshot to %s", filepath)
        return str(filepath)

    def load(self, filepath: str) -> Optional[Dict[str, Any]]:
        """Load a state dictionary. Missing or unreadable files return None."""
        filepath = Path(filepath)
        if not filepath.exists():
            return None

        try:
            with open(filepath, 'rb') as f:
                save_data = dill.load(f)
        except (OSError, EOFError, AttributeError, ImportError, ValueError, dill.UnpicklingError) as e:
            logger.error("Failed to load state snapshot %s: %s", filepath, e)
            return None

        if not isinstance(save_data, dict) or 'state' not in save_data:
            logger.error("State snapshot %s has an unexpected layout", filepath)
            return None

        version = save_data.get('version', '0')
        if version != self.VERSION:
            logger.warning("State snapshot version %s differs from %s", version, self.VERSION)
        return save_data['state']

    def backup_path(self, filepath: Path, generation: int) -> Path:
        return filepath.with_suffix(f'.backup{generation}')

    def _rotate_backups(self, filepath: Path):
        if self.max_backups <= 0:
            return
        oldest = self.backup_path(filepath, self.max_backups)
        if oldest.exists():
            oldest.unlink()
        for generation in range(self.max_backups - 1, 0, -1):
            backup = self.backup_path(filepath, generation)
            if backup.exists():
                backup.replace(self.backup_path(filepath, generation + 1))
        filepath.replace(self.backup_path(filepath, 1))
