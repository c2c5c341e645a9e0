import json
import logging
import os
import tempfile
import threading
from datetime import datetime
from typing import Any, Dict, List, Optional

import colors
from dates import to_epoch_ms, to_iso_date, utcnow
from errors import ConflictError, NotFoundError, StorageError, ValidationError
from toggle import toggle

logger = logging.getLogger(__name__)

# one lock per document path, shared by every LocalHabitStorage in the process
_locks: Dict[str, threading.RLock] = {}
_locks_guard = threading.Lock()


def _lock_for(path: str) -> threading.RLock:
    key = os.path.abspath(path)
    with _locks_guard:
        if key not in _locks:
            _locks[key] = threading.RLock()
        return _locks[key]


def _created_ms(value: Any, default: int) -> int:
    """createdDate as epoch ms; ISO strings are converted, anything else defaults."""
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        try:
            return int(value)
        except (ValueError, OverflowError):
            return default
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return to_epoch_ms(datetime.fromisoformat(text))
        except ValueError:
            return default
    return default


class LocalHabitStorage:
    """
    File storage for habits of callers without a session.

    The whole state is one JSON document:
        {"habits": [{name, description, color, createdDate, completedDates}]}
    Each mutation reads the document, changes it and writes it back under a
    per-file lock. Writers in other processes are not coordinated: the last
    write wins.
    """

    def __init__(self, storage_file: str = os.path.join("data", "habits.json")):
        self.storage_file = storage_file
        self._lock = _lock_for(storage_file)

    def _load(self) -> Dict[str, Any]:
        """Load the document, normalising every entry to the habit view."""
        if not os.path.exists(self.storage_file):
            return {"habits": []}
        try:
            with open(self.storage_file, 'r', encoding='utf-8') as f:
                data = json.load(f)
            modified_ms = int(os.path.getmtime(self.storage_file) * 1000)
        except (json.JSONDecodeError, OSError) as e:
            logger.exception("[local_storage] cannot read %s", self.storage_file)
            raise StorageError(f"cannot read {self.storage_file}: {e}") from e

        if not isinstance(data, dict) or not isinstance(data.get("habits", []), list):
            logger.error("[local_storage] malformed document in %s", self.storage_file)
            raise StorageError(f"malformed document in {self.storage_file}")

        try:
            habits = [self._normalise(h, modified_ms) for h in data.get("habits", [])]
        except (ValidationError, AttributeError, TypeError) as e:
            logger.error("[local_storage] bad habit entry in %s: %s", self.storage_file, e)
            raise StorageError(f"malformed document in {self.storage_file}") from e
        return {"habits": habits}

    @staticmethod
    def _normalise(habit: Dict[str, Any], default_created_ms: int) -> Dict[str, Any]:
        # older documents were written straight from client input: missing
        # fields, extra keys, epoch-millisecond completion dates
        name = habit.get("name")
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("habit entry without a name")
        description = habit.get("description")
        return {
            "name": name,
            "description": description if isinstance(description, str) else "",
            "color": colors.normalize_name(habit.get("color")),
            "createdDate": _created_ms(habit.get("createdDate"), default_created_ms),
            "completedDates": sorted(
                {to_iso_date(d) for d in habit.get("completedDates") or []}
            ),
        }

    def _save(self, data: Dict[str, Any]):
        """Write the document through a private temp file so no reader or
        writer ever sees half of it."""
        directory = os.path.dirname(self.storage_file) or "."
        tmp = None
        try:
            os.makedirs(directory, exist_ok=True)
            fd, tmp = tempfile.mkstemp(
                dir=directory, prefix=os.path.basename(self.storage_file) + ".", suffix=".tmp"
            )
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2)
            os.replace(tmp, self.storage_file)
        except OSError as e:
            logger.exception("[local_storage] cannot write %s", self.storage_file)
            if tmp and os.path.exists(tmp):
                os.remove(tmp)
            raise StorageError(f"cannot write {self.storage_file}: {e}") from e

    @staticmethod
    def _find(data: Dict[str, Any], name: str) -> Optional[Dict[str, Any]]:
        for habit in data["habits"]:
            if habit.get("name") == name:
                return habit
        return None

    def create_habit(self, name: str, description: Optional[str] = None,
                     color: Optional[str] = None) -> Dict[str, Any]:
        """Append a habit; names are unique within the document."""
        name = name.strip() if isinstance(name, str) else ""
        if not name:
            raise ValidationError("'name' is required")

        with self._lock:
            data = self._load()
            if self._find(data, name) is not None:
                raise ConflictError(f"Habit '{name}' already exists")
            habit = {
                "name": name,
                "description": (description or "").strip(),
                "color": colors.normalize_name(color),
                "createdDate": to_epoch_ms(utcnow()),
                "completedDates": [],
            }
            data["habits"].append(habit)
            self._save(data)

        logger.info("[local_storage] created habit %r", name)
        return dict(habit)

    def list_habits(self) -> List[Dict[str, Any]]:
        with self._lock:
            return self._load()["habits"]

    def find_habit(self, name: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            return self._find(self._load(), name)

    def toggle_completion(self, name: str, day) -> bool:
        """Flip one day for the named habit; returns True if now completed."""
        completed_date = to_iso_date(day)
        with self._lock:
            data = self._load()
            habit = self._find(data, name)
            if habit is None:
                raise NotFoundError("Habit not found")
            dates = habit["completedDates"]

            def add():
                dates.append(completed_date)
                dates.sort()

            completed = toggle(
                lookup=lambda: completed_date if completed_date in dates else None,
                add=add,
                remove=lambda found: dates.remove(found),
            )
            self._save(data)

        logger.info("[local_storage] %r on %s -> %s", name, completed_date, completed)
        return completed

    def delete_habit(self, name: str):
        """Remove the first habit with this name."""
        with self._lock:
            data = self._load()
            habit = self._find(data, name)
            if habit is None:
                raise NotFoundError("Habit not found")
            data["habits"].remove(habit)
            self._save(data)
        logger.info("[local_storage] deleted habit %r", name)
