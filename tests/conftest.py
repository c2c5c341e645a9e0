import pytest

import habits_repo
from local_storage import LocalHabitStorage


@pytest.fixture
def engine(tmp_path):
    # temporary sqlite
    engine = habits_repo.make_engine(f"sqlite:///{tmp_path / 'test.db'}")
    habits_repo.init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def user_id(engine):
    return habits_repo.create_user(engine, "reader@example.com", "not-a-real-hash")["public_id"]


@pytest.fixture
def storage(tmp_path):
    return LocalHabitStorage(str(tmp_path / "data" / "habits.json"))
