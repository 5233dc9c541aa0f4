import os
from datetime import UTC, date, datetime

import pytest
from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import sessionmaker

from venue.db.base import Base
from venue.db.models import Reservation, ReservationStatus, User
from venue.services.reservation_service import cancel_reservation, create_reservation
from venue.services.wait_list_service import lock_slot_key

TEST_POSTGRES_DATABASE_URL = os.getenv("TEST_POSTGRES_DATABASE_URL")
NOW = datetime(2024, 6, 5, 16, 0, tzinfo=UTC)
THURSDAY = date(2024, 6, 6)


@pytest.fixture(scope="module")
def postgres_session_factory():
    if not TEST_POSTGRES_DATABASE_URL:
        pytest.skip("TEST_POSTGRES_DATABASE_URL is not set")

    engine = create_engine(TEST_POSTGRES_DATABASE_URL, pool_pre_ping=True)
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)

    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)

    try:
        yield SessionLocal
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


def _seed_users(session_factory, *emails: str) -> list[int]:
    session = session_factory()
    users = [User(email=email, hashed_password="x", phone="+15550001234") for email in emails]
    session.add_all(users)
    session.commit()
    ids = [user.id for user in users]
    session.close()
    return ids


@pytest.mark.postgres
def test_advisory_lock_is_shared_by_bar_and_mahjong(postgres_session_factory):
    holder = postgres_session_factory()
    contender = postgres_session_factory()
    try:
        lock_slot_key(holder, THURSDAY, "20:00", "bar")
        contender.execute(select(func.set_config("lock_timeout", "200ms", True)))
        with pytest.raises(Exception):
            lock_slot_key(contender, THURSDAY, "20:00", "mahjong")
        contender.rollback()

        contender.execute(select(func.set_config("lock_timeout", "200ms", True)))
        lock_slot_key(contender, THURSDAY, "20:00", "poker")
    finally:
        holder.rollback()
        contender.rollback()
        holder.close()
        contender.close()


@pytest.mark.postgres
def test_cancel_promotes_on_postgres(postgres_session_factory):
    holder_id, waiting_id = _seed_users(postgres_session_factory, "pg-holder@example.com", "pg-waiting@example.com")
    session = postgres_session_factory()
    try:
        confirmed = create_reservation(
            session, user_id=holder_id, day=THURSDAY, start_time="21:00", room_type="bar", party_size=4, now=NOW
        ).reservation
        queued = create_reservation(
            session, user_id=waiting_id, day=THURSDAY, start_time="21:00", room_type="bar", party_size=4, now=NOW
        ).reservation
        holder = session.get(User, holder_id)

        result = cancel_reservation(session, confirmed.id, holder, now=NOW)

        assert result.promoted_reservation_id == queued.id
        session.expire_all()
        assert session.get(Reservation, queued.id).status == ReservationStatus.CONFIRMED.value
    finally:
        session.close()
