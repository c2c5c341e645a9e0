# init_db.py
"""Create the users / habits / habit_completions tables at DATABASE_URL."""
import sys

from config import Config, configure_logging
from errors import StorageError
from habits_repo import init_db, make_engine


def main(database_url=None):
    database_url = database_url or Config.DATABASE_URL
    print(f"Initializing database at {database_url} ...")
    engine = make_engine(database_url)
    try:
        init_db(engine)
    except StorageError as e:
        print(f"✗ Error initializing database: {e}")
        return 1
    finally:
        engine.dispose()
    print("✓ Database initialized successfully!")
    print("Tables created: users, habits, habit_completions")
    return 0


if __name__ == "__main__":
    configure_logging()
    sys.exit(main(sys.argv[1] if len(sys.argv) > 1 else None))
