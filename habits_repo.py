# habits_repo.py
import logging
import uuid
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import (
    create_engine, event, MetaData, Table, Column, Integer, String,
    DateTime, ForeignKey, UniqueConstraint, select, delete
)
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

import colors
from dates import to_iso_date, utcnow
from errors import ConflictError, NotFoundError, StorageError, ValidationError

logger = logging.getLogger(__name__)

# -------------------------
# Engine
# -------------------------
def _enable_sqlite_foreign_keys(dbapi_conn, _record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def make_engine(database_url: str = "sqlite:///database.sqlite"):
    """Create and return a SQLAlchemy engine (SQLite by default)."""
    engine = create_engine(database_url, future=True)
    if engine.dialect.name == "sqlite":
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    return engine

# -------------------------
# Schema (module-level, shared)
# -------------------------
metadata = MetaData()

users = Table(
    "users", metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("public_id", String, nullable=False, unique=True),
    Column("email", String, nullable=False, unique=True, index=True),
    Column("hashed_password", String, nullable=False),
    Column("created_at", DateTime, nullable=False, default=utcnow),
)

habits = Table(
    "habits", metadata,
    Column("id", String, primary_key=True),
    Column("user_id", String, ForeignKey("users.public_id", ondelete="CASCADE"),
           nullable=False, index=True),
    Column("name", String, nullable=False),
    Column("description", String),
    Column("color", String, nullable=False),  # hex, see colors.py
    Column("created_at", DateTime, nullable=False, default=utcnow),
    Column("updated_at", DateTime, nullable=False, default=utcnow),
    UniqueConstraint("user_id", "name", name="uq_habits_user_name"),
)

habit_completions = Table(
    "habit_completions", metadata,
    Column("id", String, primary_key=True),
    Column("habit_id", String, ForeignKey("habits.id", ondelete="CASCADE"),
           nullable=False, index=True),
    Column("completed_date", String, nullable=False),  # YYYY-MM-DD
    Column("created_at", DateTime, nullable=False, default=utcnow),
    UniqueConstraint("habit_id", "completed_date", name="uq_completions_habit_date"),
)

# -------------------------
# DB init
# -------------------------
def init_db(engine):
    """Create tables if they do not exist."""
    try:
        metadata.create_all(engine)
    except SQLAlchemyError as e:
        logger.exception("[init_db] failed to create schema")
        raise StorageError(str(e)) from e

# -------------------------
# Helpers
# -------------------------
def _row_to_dict(row) -> Dict[str, Any]:
    # SQLAlchemy 2.x: row is Row; use _mapping
    return dict(row._mapping)


def _new_id() -> str:
    return str(uuid.uuid4())


def _delete_completions_of(habit_id: str):
    return delete(habit_completions).where(habit_completions.c.habit_id == habit_id)


def _storage_error(op: str, e: Exception) -> StorageError:
    logger.exception("[%s] storage failure", op)
    return StorageError(f"{op}: {e}")


def _integrity_error(engine, op: str, e: IntegrityError, duplicate, conflict_message: str,
                     referenced=None):
    """
    Classify a failed insert by re-reading instead of parsing driver text,
    which differs per dialect. ``duplicate`` selects the row the insert
    would have clashed with; ``referenced`` selects the parent row it needs.
    """
    try:
        with engine.connect() as conn:
            if conn.execute(duplicate).first() is not None:
                return ConflictError(conflict_message)
            if referenced is not None and conn.execute(referenced).first() is None:
                logger.warning("[%s] referenced row missing: %s", op, e.orig)
                return NotFoundError("Referenced record not found")
    except SQLAlchemyError as lookup_error:
        return _storage_error(op, lookup_error)
    return _storage_error(op, e)

# -------------------------
# Users
# -------------------------
def create_user(engine, email: str, hashed_password: str) -> Dict[str, str]:
    """Insert a user and return its public (client-facing) id."""
    public_id = _new_id()
    same_email = select(users.c.id).where(users.c.email == email)
    try:
        with engine.begin() as conn:
            if conn.execute(same_email).first():
                raise ConflictError("Email already exists")
            conn.execute(users.insert().values(
                public_id=public_id,
                email=email,
                hashed_password=hashed_password,
            ))
    except IntegrityError as e:
        raise _integrity_error(engine, "create_user", e, same_email, "Email already exists") from e
    except SQLAlchemyError as e:
        raise _storage_error("create_user", e) from e
    logger.info("[create_user] created user %s", public_id)
    return {"public_id": public_id, "email": email}


def find_user_by_email(engine, email: str) -> Optional[Dict[str, Any]]:
    stmt = select(users.c.public_id, users.c.email, users.c.hashed_password).where(
        users.c.email == email
    )
    try:
        with engine.connect() as conn:
            row = conn.execute(stmt).first()
    except SQLAlchemyError as e:
        raise _storage_error("find_user_by_email", e) from e
    return _row_to_dict(row) if row else None


def find_user(engine, public_id: str) -> Optional[Dict[str, Any]]:
    stmt = select(users.c.public_id, users.c.email).where(users.c.public_id == public_id)
    try:
        with engine.connect() as conn:
            row = conn.execute(stmt).first()
    except SQLAlchemyError as e:
        raise _storage_error("find_user", e) from e
    return _row_to_dict(row) if row else None

# -------------------------
# Habits
# -------------------------
def create_habit(
    engine,
    owner_id: str,
    name: str,
    description: Optional[str] = None,
    color: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Add a new habit for owner_id and return the stored row.
    Color is a palette name; it is stored as hex.
    Raises ValidationError for a blank name, ConflictError if the owner
    already has a habit with that name.
    """
    name = (name or "").strip() if isinstance(name, str) else ""
    if not name:
        raise ValidationError("'name' is required")
    if not owner_id:
        raise ValidationError("'owner_id' is required")

    now = utcnow()
    payload = {
        "id": _new_id(),
        "user_id": owner_id,
        "name": name,
        "description": (description or "").strip() or None,
        "color": colors.to_hex(color),
        "created_at": now,
        "updated_at": now,
    }

    same_name = select(habits.c.id).where(habits.c.user_id == owner_id, habits.c.name == name)
    try:
        with engine.begin() as conn:  # ensures commit
            if conn.execute(same_name).first():
                raise ConflictError(f"Habit '{name}' already exists")
            conn.execute(habits.insert().values(**payload))
    except IntegrityError as e:
        raise _integrity_error(
            engine, "create_habit", e, same_name, f"Habit '{name}' already exists",
            referenced=select(users.c.id).where(users.c.public_id == owner_id),
        ) from e
    except SQLAlchemyError as e:
        raise _storage_error("create_habit", e) from e

    logger.info("[create_habit] %s created habit %s", owner_id, payload["id"])
    return payload


def list_habits(engine, owner_id: str) -> List[Dict[str, Any]]:
    """All habits of owner_id, oldest first."""
    stmt = (
        select(habits)
        .where(habits.c.user_id == owner_id)
        .order_by(habits.c.created_at.asc(), habits.c.id.asc())
    )
    try:
        with engine.connect() as conn:
            rows = conn.execute(stmt).all()
    except SQLAlchemyError as e:
        raise _storage_error("list_habits", e) from e
    logger.debug("[list_habits] %d habits for %s", len(rows), owner_id)
    return [_row_to_dict(r) for r in rows]


def find_habit(engine, owner_id: str, name: str) -> Optional[Dict[str, Any]]:
    stmt = select(habits).where(habits.c.user_id == owner_id, habits.c.name == name)
    try:
        with engine.connect() as conn:
            row = conn.execute(stmt).first()
    except SQLAlchemyError as e:
        raise _storage_error("find_habit", e) from e
    return _row_to_dict(row) if row else None


def delete_habit(engine, habit_id: str) -> bool:
    """
    Remove a habit and all of its completions in one transaction.
    Returns False if there was no such habit.
    """
    try:
        with engine.begin() as conn:
            conn.execute(_delete_completions_of(habit_id))
            removed = conn.execute(delete(habits).where(habits.c.id == habit_id)).rowcount
    except SQLAlchemyError as e:
        raise _storage_error("delete_habit", e) from e
    if removed:
        logger.info("[delete_habit] deleted habit %s", habit_id)
    return bool(removed)

# -------------------------
# Completions
# -------------------------
def list_completions(engine, habit_ids: Iterable[str]) -> List[Tuple[str, str]]:
    """
    (habit_id, completed_date) for every completion of the given habits,
    in a single query. No query is issued for an empty id list.
    """
    habit_ids = list(habit_ids)
    if not habit_ids:
        return []
    stmt = (
        select(habit_completions.c.habit_id, habit_completions.c.completed_date)
        .where(habit_completions.c.habit_id.in_(habit_ids))
        .order_by(habit_completions.c.completed_date.asc())
    )
    try:
        with engine.connect() as conn:
            rows = conn.execute(stmt).all()
    except SQLAlchemyError as e:
        raise _storage_error("list_completions", e) from e
    return [(r.habit_id, r.completed_date) for r in rows]


def find_completion(engine, habit_id: str, day) -> Optional[Dict[str, Any]]:
    stmt = select(habit_completions).where(
        habit_completions.c.habit_id == habit_id,
        habit_completions.c.completed_date == to_iso_date(day),
    )
    try:
        with engine.connect() as conn:
            row = conn.execute(stmt).first()
    except SQLAlchemyError as e:
        raise _storage_error("find_completion", e) from e
    return _row_to_dict(row) if row else None


def create_completion(engine, habit_id: str, day) -> str:
    """Insert one completion; ConflictError if (habit_id, day) is taken."""
    completion_id = _new_id()
    completed_date = to_iso_date(day)
    try:
        with engine.begin() as conn:
            conn.execute(habit_completions.insert().values(
                id=completion_id,
                habit_id=habit_id,
                completed_date=completed_date,
            ))
    except IntegrityError as e:
        raise _integrity_error(
            engine, "create_completion", e,
            select(habit_completions.c.id).where(
                habit_completions.c.habit_id == habit_id,
                habit_completions.c.completed_date == completed_date,
            ),
            f"Habit {habit_id} already completed on {completed_date}",
            referenced=select(habits.c.id).where(habits.c.id == habit_id),
        ) from e
    except SQLAlchemyError as e:
        raise _storage_error("create_completion", e) from e
    return completion_id


def delete_completion(engine, completion_id: str) -> bool:
    try:
        with engine.begin() as conn:
            removed = conn.execute(
                delete(habit_completions).where(habit_completions.c.id == completion_id)
            ).rowcount
    except SQLAlchemyError as e:
        raise _storage_error("delete_completion", e) from e
    return bool(removed)


def delete_completions(engine, habit_id: str) -> int:
    try:
        with engine.begin() as conn:
            removed = conn.execute(_delete_completions_of(habit_id)).rowcount
    except SQLAlchemyError as e:
        raise _storage_error("delete_completions", e) from e
    return removed
