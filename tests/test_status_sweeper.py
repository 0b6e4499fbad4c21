"""Tests for the lazy appointment status sweeper."""

from datetime import datetime, time

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from clinic_portal.config import settings
from clinic_portal.models import appointments
from clinic_portal.services.status_sweeper import (
    AUTO_CANCEL_NOTE,
    AUTO_EXPIRE_NOTE,
    StatusSweeper,
    SweepResult,
)

from .conftest import FRIDAY, NEXT_MONDAY, WEDNESDAY


async def load(db, appointment_id):
    result = await db.execute(select(appointments).where(appointments.c.id == appointment_id))
    row = result.mappings().one()
    await db.commit()
    return row


@pytest.mark.asyncio
async def test_missed_appointments_are_cancelled(
    db_session, test_patient, test_doctor, make_appointment, clock
) -> None:
    pending = await make_appointment(test_patient, test_doctor, WEDNESDAY, time(9))
    confirmed = await make_appointment(
        test_patient, test_doctor, WEDNESDAY, time(9, 30), status="confirmed"
    )
    clock.set(datetime(2026, 10, 21, 10, 0))

    result = await StatusSweeper(db_session, clock=clock).run()

    assert result == SweepResult(cancelled=2)
    for appointment_id in (pending, confirmed):
        row = await load(db_session, appointment_id)
        assert row["status"] == "cancelled"
        assert row["cancelled_at"] == clock()
        assert row["notes"] == AUTO_CANCEL_NOTE


@pytest.mark.asyncio
async def test_appointment_at_current_minute_is_left_alone(
    db_session, test_patient, test_doctor, make_appointment, clock
) -> None:
    appointment_id = await make_appointment(test_patient, test_doctor, WEDNESDAY, time(9))
    clock.set(datetime(2026, 10, 21, 9, 0))

    result = await StatusSweeper(db_session, clock=clock).run()

    assert result.total == 0
    assert (await load(db_session, appointment_id))["status"] == "pending"


@pytest.mark.asyncio
async def test_existing_notes_are_kept(
    db_session, test_patient, test_doctor, make_appointment, clock
) -> None:
    appointment_id = await make_appointment(
        test_patient, test_doctor, WEDNESDAY, time(9), notes="Bring previous reports"
    )
    clock.set(datetime(2026, 10, 22, 8, 0))

    await StatusSweeper(db_session, clock=clock).run()

    row = await load(db_session, appointment_id)
    assert row["notes"] == "Bring previous reports" + AUTO_CANCEL_NOTE


@pytest.mark.asyncio
async def test_checked_in_appointment_completes_after_grace(
    db_session, test_patient, test_doctor, make_appointment, clock
) -> None:
    appointment_id = await make_appointment(
        test_patient,
        test_doctor,
        WEDNESDAY,
        time(9),
        status="confirmed",
        checked_in_at=datetime(2026, 10, 21, 8, 50),
    )
    sweeper = StatusSweeper(db_session, clock=clock)

    # Checked in, still inside the grace period
    clock.set(datetime(2026, 10, 21, 9, 45))
    assert (await sweeper.run()).total == 0
    assert (await load(db_session, appointment_id))["status"] == "confirmed"

    clock.set(datetime(2026, 10, 21, 10, 1))
    assert await sweeper.run() == SweepResult(completed=1)

    row = await load(db_session, appointment_id)
    assert row["status"] == "completed"
    assert row["cancelled_at"] is None
    assert row["notes"] is None


@pytest.mark.asyncio
async def test_unconfirmed_bookings_stay_pending_by_default(
    db_session, test_patient, test_doctor, make_appointment, clock, monkeypatch
) -> None:
    monkeypatch.setattr(settings, "auto_expire_unconfirmed", False)
    appointment_id = await make_appointment(test_patient, test_doctor, NEXT_MONDAY, time(10))
    clock.set(datetime(2026, 10, 21, 8, 0))

    result = await StatusSweeper(db_session, clock=clock).run()

    assert result.total == 0
    assert (await load(db_session, appointment_id))["status"] == "pending"


@pytest.mark.asyncio
async def test_auto_expire_releases_unconfirmed_bookings(
    db_session, test_patient, test_doctor, make_appointment, clock, monkeypatch
) -> None:
    monkeypatch.setattr(settings, "auto_expire_unconfirmed", True)
    pending = await make_appointment(test_patient, test_doctor, NEXT_MONDAY, time(10))
    confirmed = await make_appointment(
        test_patient,
        test_doctor,
        FRIDAY,
        time(10),
        status="confirmed",
        confirmed_at=datetime(2026, 10, 19, 9, 0),
    )
    clock.set(datetime(2026, 10, 21, 8, 0))

    result = await StatusSweeper(db_session, clock=clock).run()

    assert result == SweepResult(expired=1)
    expired = await load(db_session, pending)
    assert expired["status"] == "expired"
    assert expired["notes"] == AUTO_EXPIRE_NOTE
    assert (await load(db_session, confirmed))["status"] == "confirmed"


@pytest.mark.asyncio
async def test_terminal_appointments_are_untouched(
    db_session, test_patient, test_doctor, make_appointment, clock, monkeypatch
) -> None:
    monkeypatch.setattr(settings, "auto_expire_unconfirmed", True)
    ids = {
        status: await make_appointment(test_patient, test_doctor, WEDNESDAY, slot, status=status)
        for status, slot in (
            ("cancelled", time(9)),
            ("completed", time(9, 30)),
            ("expired", time(10)),
        )
    }
    clock.set(datetime(2026, 10, 23, 12, 0))

    result = await StatusSweeper(db_session, clock=clock).run()

    assert result.total == 0
    for status, appointment_id in ids.items():
        row = await load(db_session, appointment_id)
        assert row["status"] == status
        assert row["notes"] is None


@pytest.mark.asyncio
async def test_sweep_is_idempotent(
    db_session, test_patient, test_doctor, make_appointment, clock
) -> None:
    await make_appointment(test_patient, test_doctor, WEDNESDAY, time(9))
    await make_appointment(
        test_patient,
        test_doctor,
        WEDNESDAY,
        time(9, 30),
        status="confirmed",
        checked_in_at=datetime(2026, 10, 21, 9, 20),
    )
    clock.set(datetime(2026, 10, 22, 8, 0))
    sweeper = StatusSweeper(db_session, clock=clock)

    first = await sweeper.run()
    second = await sweeper.run()

    assert first == SweepResult(cancelled=1, completed=1)
    assert second == SweepResult()


@pytest.mark.asyncio
async def test_sweep_failure_is_rolled_back_and_swallowed(
    db_session, test_patient, test_doctor, make_appointment, clock, monkeypatch
) -> None:
    appointment_id = await make_appointment(test_patient, test_doctor, WEDNESDAY, time(9))
    clock.set(datetime(2026, 10, 22, 8, 0))
    sweeper = StatusSweeper(db_session, clock=clock)

    async def broken(now):
        raise OperationalError("UPDATE appointments", {}, Exception("database is locked"))

    monkeypatch.setattr(sweeper, "_complete_checked_in", broken)

    result = await sweeper.run()

    assert result == SweepResult()
    # The cancel pass ran before the failure and was rolled back with it
    assert (await load(db_session, appointment_id))["status"] == "pending"
