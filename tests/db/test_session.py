# tests/db/test_session.py
import pytest
from sqlalchemy import inspect
from sqlalchemy.exc import IntegrityError

from hospital_api.db.models import Appointment, Staff
from hospital_api.db.session import (
    create_session,
    get_engine,
    get_session,
    init_db,
    reset_engine,
    session_scope,
)


def test_init_db_creates_tables(tmp_path):
    db_path = tmp_path / "nested" / "test.db"
    engine = init_db(db_path)

    assert db_path.exists()

    tables = inspect(engine).get_table_names()
    assert {"users", "staff", "appointments"} <= set(tables)


def test_init_db_accepts_url(tmp_path):
    engine = init_db(f"sqlite:///{tmp_path / 'url.db'}")
    assert get_engine() is engine


def test_reinit_replaces_engine(tmp_path):
    first = init_db(tmp_path / "a.db")
    second = init_db(tmp_path / "b.db")

    assert first is not second
    assert get_engine() is second


def test_create_session_works_after_init(tmp_path):
    init_db(tmp_path / "test.db")

    session = create_session()
    assert session is not None
    session.close()


def test_get_session_yields_and_closes(tmp_path):
    init_db(tmp_path / "test.db")

    gen = get_session()
    session = next(gen)
    assert session.is_active
    with pytest.raises(StopIteration):
        next(gen)


def test_create_session_fails_without_init():
    reset_engine()
    with pytest.raises(RuntimeError, match="not initialized"):
        create_session()


def test_get_engine_fails_without_init():
    reset_engine()
    with pytest.raises(RuntimeError, match="not initialized"):
        get_engine()


def test_session_scope_commits(tmp_path):
    init_db(tmp_path / "test.db")

    with session_scope() as session:
        session.add(Staff(name="Ada", email="ada@example.com", password="x"))

    with session_scope() as session:
        assert session.query(Staff).count() == 1


def test_session_scope_rolls_back_on_error(tmp_path):
    init_db(tmp_path / "test.db")

    with pytest.raises(ValueError):
        with session_scope() as session:
            session.add(Staff(name="Ada", email="ada@example.com", password="x"))
            session.flush()
            raise ValueError("boom")

    with session_scope() as session:
        assert session.query(Staff).count() == 0


def test_sqlite_enforces_foreign_keys(tmp_path):
    init_db(tmp_path / "test.db")

    with pytest.raises(IntegrityError):
        with session_scope() as session:
            session.add(
                Appointment(
                    patient_name="Nobody",
                    staff_id="0123456789abcdef01234567",
                    date="2024-01-01",
                    time="09:00",
                    reason="checkup",
                )
            )
