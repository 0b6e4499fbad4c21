"""Tests for time normalisation and slot generation."""

from datetime import time
from uuid import uuid4

import pytest
from sqlalchemy import update

from clinic_portal.core.exceptions import NotFoundException, PastDateException
from clinic_portal.core.timeutils import (
    display_time,
    is_on_slot_grid,
    normalize_time,
    parse_working_hours,
)
from clinic_portal.models import doctors
from clinic_portal.schemas.appointments import AppointmentCreate
from clinic_portal.services.appointment_service import AppointmentService
from clinic_portal.services.slot_service import (
    DOCTOR_UNAVAILABLE,
    SlotGrid,
    SlotService,
    available_times,
)

from .conftest import FRIDAY, MONDAY, NEXT_MONDAY, TUESDAY, WEDNESDAY


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("14:30", time(14, 30)),
        ("14:30:00", time(14, 30)),
        ("2:30 PM", time(14, 30)),
        ("2:30pm", time(14, 30)),
        ("12:00 AM", time(0, 0)),
        ("12:00 PM", time(12, 0)),
        ("9 AM", time(9, 0)),
    ],
)
def test_normalize_time_accepts_12_and_24_hour_forms(raw, expected):
    assert normalize_time(raw) == expected


def test_normalize_time_rejects_garbage():
    with pytest.raises(ValueError):
        normalize_time("half past nine")


def test_parse_working_hours():
    assert parse_working_hours("09:00-17:00") == (time(9), time(17))
    assert parse_working_hours("9:00 AM-1:30 PM") == (time(9), time(13, 30))
    assert parse_working_hours("") is None
    assert parse_working_hours(None) is None
    assert parse_working_hours("nine to five") is None
    # Inverted windows are treated as malformed
    assert parse_working_hours("17:00-09:00") is None


def test_parse_working_hours_rounds_start_onto_grid():
    assert parse_working_hours("09:15-12:00") == (time(9, 30), time(12))
    assert parse_working_hours("8:45 AM-5:00 PM") == (time(9), time(17))
    # Nothing bookable is left once the start is rounded
    assert parse_working_hours("09:15-09:30") is None
    assert parse_working_hours("23:45-23:59") is None


def test_slot_grid_alignment():
    assert is_on_slot_grid(time(9, 0))
    assert is_on_slot_grid(time(9, 30))
    assert not is_on_slot_grid(time(9, 15))
    assert display_time(time(9, 30)) == "9:30 AM"
    assert display_time(time(14, 0)) == "2:00 PM"


def test_slot_grid_iterates_half_hours_before_end():
    grid = SlotGrid(time(9), time(12))

    assert list(grid) == [time(9), time(9, 30), time(10), time(10, 30), time(11), time(11, 30)]
    # Restartable
    assert list(grid) == list(grid)
    assert time(11, 30) in grid
    assert time(12) not in grid
    assert time(9, 15) not in grid


def test_slot_grid_partial_last_slot():
    # A window ending off-grid still starts its last slot before the end
    assert list(SlotGrid(time(9), time(10, 15))) == [time(9), time(9, 30), time(10)]


def test_available_times_subtracts_booked_and_past():
    grid = SlotGrid(time(9), time(11))
    booked = {time(9, 30)}

    assert available_times(grid, booked) == [time(9), time(10), time(10, 30)]
    assert available_times(grid, booked, not_after=time(10)) == [time(10, 30)]


@pytest.mark.asyncio
async def test_empty_day_lists_every_slot(db_session, test_doctor, clock):
    service = SlotService(db_session, clock=clock)

    result = await service.get_available_slots(test_doctor["id"], WEDNESDAY)

    assert result.success is True
    assert result.available is True
    assert result.slots == ["9:00 AM", "9:30 AM", "10:00 AM", "10:30 AM", "11:00 AM", "11:30 AM"]
    assert result.slot_times == [
        "09:00:00",
        "09:30:00",
        "10:00:00",
        "10:30:00",
        "11:00:00",
        "11:30:00",
    ]


@pytest.mark.asyncio
async def test_booked_slots_are_excluded(db_session, test_doctor, test_patient, make_appointment, clock):
    await make_appointment(test_patient, test_doctor, WEDNESDAY, time(10), status="pending")
    await make_appointment(test_patient, test_doctor, WEDNESDAY, time(11), status="confirmed")

    result = await SlotService(db_session, clock=clock).get_available_slots(
        test_doctor["id"], WEDNESDAY
    )

    assert result.slot_times == ["09:00:00", "09:30:00", "10:30:00", "11:30:00"]


@pytest.mark.asyncio
async def test_cancelled_and_expired_release_their_slot(
    db_session, test_doctor, test_patient, make_appointment, clock
):
    await make_appointment(test_patient, test_doctor, WEDNESDAY, time(10), status="cancelled")
    await make_appointment(test_patient, test_doctor, WEDNESDAY, time(10, 30), status="expired")

    result = await SlotService(db_session, clock=clock).get_available_slots(
        test_doctor["id"], WEDNESDAY
    )

    assert "10:00:00" in result.slot_times
    assert "10:30:00" in result.slot_times


@pytest.mark.asyncio
async def test_non_working_day_reports_doctor_unavailable(db_session, test_doctor, clock):
    result = await SlotService(db_session, clock=clock).get_available_slots(
        test_doctor["id"], TUESDAY
    )

    assert result.success is True
    assert result.available is False
    assert result.reason == DOCTOR_UNAVAILABLE
    assert result.slots == []


@pytest.mark.asyncio
async def test_today_drops_times_already_passed(db_session, test_doctor, clock):
    clock.set(clock().replace(hour=10, minute=0))

    result = await SlotService(db_session, clock=clock).get_available_slots(
        test_doctor["id"], MONDAY
    )

    assert result.slot_times == ["10:30:00", "11:00:00", "11:30:00"]


@pytest.mark.asyncio
async def test_fully_booked_day_is_not_available(
    db_session, test_doctor, test_patient, make_appointment, clock
):
    for slot in SlotGrid(time(9), time(12)):
        await make_appointment(test_patient, test_doctor, FRIDAY, slot)

    result = await SlotService(db_session, clock=clock).get_available_slots(
        test_doctor["id"], FRIDAY
    )

    assert result.available is False
    assert result.reason is None
    assert result.message == "No available slots on this day"


@pytest.mark.asyncio
async def test_past_date_is_rejected(db_session, test_doctor, clock):
    clock.advance(days=3)

    with pytest.raises(PastDateException):
        await SlotService(db_session, clock=clock).get_available_slots(test_doctor["id"], MONDAY)


@pytest.mark.asyncio
async def test_unknown_doctor(db_session, clock):
    with pytest.raises(NotFoundException):
        await SlotService(db_session, clock=clock).get_available_slots(uuid4(), WEDNESDAY)


@pytest.mark.asyncio
async def test_missing_hours_fall_back_to_default_window(db_session, test_doctor, clock):
    await db_session.execute(
        update(doctors)
        .where(doctors.c.id == test_doctor["id"])
        .values(available_hours="whenever", available_days=[])
    )
    await db_session.commit()

    result = await SlotService(db_session, clock=clock).get_available_slots(
        test_doctor["id"], TUESDAY
    )

    # No day restriction and the 09:00-17:00 default window
    assert result.available is True
    assert result.slot_times[0] == "09:00:00"
    assert result.slot_times[-1] == "16:30:00"
    assert len(result.slot_times) == 16


@pytest.mark.asyncio
async def test_slot_listing_is_deterministic(db_session, test_doctor, test_patient, make_appointment, clock):
    await make_appointment(test_patient, test_doctor, WEDNESDAY, time(9, 30))
    service = SlotService(db_session, clock=clock)

    first = await service.get_available_slots(test_doctor["id"], WEDNESDAY)
    second = await service.get_available_slots(test_doctor["id"], WEDNESDAY)

    assert first == second


@pytest.mark.asyncio
async def test_off_grid_hours_list_only_bookable_slots(db_session, test_doctor, caller, clock):
    await db_session.execute(
        update(doctors)
        .where(doctors.c.id == test_doctor["id"])
        .values(available_hours="09:15-12:00")
    )
    await db_session.commit()

    result = await SlotService(db_session, clock=clock).get_available_slots(
        test_doctor["id"], NEXT_MONDAY
    )

    assert result.slot_times == ["09:30:00", "10:00:00", "10:30:00", "11:00:00", "11:30:00"]

    booked = await AppointmentService(db_session, clock=clock).book_appointment(
        caller,
        AppointmentCreate(
            doctor_id=test_doctor["id"],
            appointment_date=NEXT_MONDAY,
            appointment_time=result.slot_times[0],
            reason="Follow-up visit",
        ),
    )

    assert booked.appointment_id is not None
