import logging
from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Any, Dict, List, Optional

import colors
import habits_repo
from dates import to_epoch_ms, to_iso_date
from errors import NotFoundError
from local_storage import LocalHabitStorage
from toggle import toggle

logger = logging.getLogger(__name__)


class HabitBackend(ABC):
    """
    Operations on the habits of one caller.

    Both implementations return habits in the same shape:
        {name, description, color, createdDate, completedDates}
    with color a palette name, createdDate epoch milliseconds and
    completedDates ascending YYYY-MM-DD strings.
    """

    @abstractmethod
    def create_habit(self, name: str, description: Optional[str] = None,
                     color: Optional[str] = None) -> Dict[str, Any]:
        ...

    @abstractmethod
    def list_habits(self) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    def toggle_completion(self, habit_name: str, day) -> bool:
        """Flip ``day`` for the habit. Returns True if it is now completed."""

    @abstractmethod
    def delete_habit(self, habit_name: str):
        ...


class DatabaseHabitBackend(HabitBackend):
    """Habits of a signed-in user, kept in the relational store."""

    def __init__(self, engine, user_id: str):
        self.engine = engine
        self.user_id = user_id

    @staticmethod
    def _to_view(row: Dict[str, Any], completed_dates: List[str]) -> Dict[str, Any]:
        return {
            "name": row["name"],
            "description": row.get("description") or "",
            "color": colors.to_name(row["color"]),
            "createdDate": to_epoch_ms(row["created_at"]),
            "completedDates": sorted(completed_dates),
        }

    def _require_habit(self, habit_name: str) -> Dict[str, Any]:
        habit = habits_repo.find_habit(self.engine, self.user_id, habit_name)
        if habit is None:
            raise NotFoundError("Habit not found")
        return habit

    def create_habit(self, name, description=None, color=None):
        row = habits_repo.create_habit(self.engine, self.user_id, name, description, color)
        return self._to_view(row, [])

    def list_habits(self):
        rows = habits_repo.list_habits(self.engine, self.user_id)
        by_habit = defaultdict(list)
        # one query for every habit of the user
        for habit_id, completed_date in habits_repo.list_completions(
            self.engine, [r["id"] for r in rows]
        ):
            by_habit[habit_id].append(completed_date)
        return [self._to_view(r, by_habit[r["id"]]) for r in rows]

    def toggle_completion(self, habit_name, day):
        completed_date = to_iso_date(day)
        habit = self._require_habit(habit_name)
        habit_id = habit["id"]

        completed = toggle(
            lookup=lambda: habits_repo.find_completion(self.engine, habit_id, completed_date),
            add=lambda: habits_repo.create_completion(self.engine, habit_id, completed_date),
            remove=lambda found: habits_repo.delete_completion(self.engine, found["id"]),
        )
        logger.info("[toggle_completion] %s %r on %s -> %s",
                    self.user_id, habit_name, completed_date, completed)
        return completed

    def delete_habit(self, habit_name):
        habit = self._require_habit(habit_name)
        if not habits_repo.delete_habit(self.engine, habit["id"]):
            # removed by someone else in between
            raise NotFoundError("Habit not found")


class LocalHabitBackend(HabitBackend):
    """Habits of an anonymous caller, kept in the local JSON document."""

    def __init__(self, storage: LocalHabitStorage):
        self.storage = storage

    def create_habit(self, name, description=None, color=None):
        return self.storage.create_habit(name, description, color)

    def list_habits(self):
        return self.storage.list_habits()

    def toggle_completion(self, habit_name, day):
        return self.storage.toggle_completion(habit_name, day)

    def delete_habit(self, habit_name):
        self.storage.delete_habit(habit_name)


def backend_for(user_id: Optional[str], engine, storage: LocalHabitStorage) -> HabitBackend:
    """Signed-in callers use the database, everyone else the local document."""
    if user_id:
        return DatabaseHabitBackend(engine, user_id)
    return LocalHabitBackend(storage)
