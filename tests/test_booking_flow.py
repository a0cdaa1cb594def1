"""Tests for the step-by-step booking dialogue."""

from __future__ import annotations

from datetime import UTC, datetime
from unittest.mock import patch

import pytest

from vet_assistant.booking.flow import (
    BOOKING_CANCELLED,
    BOOKING_PROMPTS,
    CONFIRM_OR_CANCEL,
    INVALID_OWNER_NAME,
    INVALID_PET_NAME,
    INVALID_PHONE,
    PAST_DATE,
    START_OVER,
    UNPARSEABLE_DATE,
)
from vet_assistant.models import AppointmentStatus, BookingStep, CollectedData
from vet_assistant.services.store import SessionConflictError, StoreError

# ── Helpers ──────────────────────────────────────────────────────────


def _answer(flow, sessions, session_id: str, text: str):
    """Load the stored session, send one answer and return (result, reloaded session)."""
    session = sessions.get(session_id)
    result = flow.advance(session, text)
    return result, sessions.get(session_id)


def _walk_to(flow, sessions, session_id: str, step: BookingStep):
    answers = [
        ("book an appointment", BookingStep.OWNER_NAME),
        ("Jane Doe", BookingStep.PET_NAME),
        ("Rex", BookingStep.PHONE),
        ("555-123-4567", BookingStep.DATE_TIME),
        ("January 20, 2026 at 3:00 PM", BookingStep.CONFIRM),
    ]
    for text, reached in answers:
        _answer(flow, sessions, session_id, text)
        if reached == step:
            return sessions.get(session_id)
    raise AssertionError(f"cannot walk to {step}")


# ── Happy path ───────────────────────────────────────────────────────


class TestHappyPath:
    def test_full_booking_creates_pending_appointment(self, flow, sessions, appointments, session):
        result, stored = _answer(flow, sessions, session.session_id, "book an appointment")
        assert "pet owner's name" in result.message
        assert stored.booking_state.in_progress is True
        assert stored.booking_state.step == BookingStep.OWNER_NAME

        result, stored = _answer(flow, sessions, session.session_id, "Jane Doe")
        assert stored.booking_state.step == BookingStep.PET_NAME
        assert result.message == BOOKING_PROMPTS[BookingStep.PET_NAME]

        result, stored = _answer(flow, sessions, session.session_id, "Rex")
        assert stored.booking_state.step == BookingStep.PHONE

        result, stored = _answer(flow, sessions, session.session_id, "555-123-4567")
        assert stored.booking_state.step == BookingStep.DATE_TIME

        result, stored = _answer(flow, sessions, session.session_id, "January 20, 2026 at 3:00 PM")
        assert stored.booking_state.step == BookingStep.CONFIRM
        assert "Jane Doe" in result.message
        assert "Rex" in result.message
        assert "555-123-4567" in result.message
        assert "Tue 20 Jan 2026 at 15:00" in result.message
        assert stored.booking_state.collected_data.preferred_date_time == "2026-01-20T15:00:00+00:00"

        result, stored = _answer(flow, sessions, session.session_id, "confirm")
        assert result.appointment_created is True
        assert result.appointment_id
        assert stored.booking_state.in_progress is False
        assert stored.booking_state.step == BookingStep.IDLE
        assert stored.booking_state.collected_data == CollectedData()

        [appointment] = appointments.list_for_session(session.session_id)
        assert appointment.id == result.appointment_id
        assert appointment.status == AppointmentStatus.PENDING
        assert appointment.owner_name == "Jane Doe"
        assert appointment.pet_name == "Rex"
        assert appointment.phone_number == "555-123-4567"
        assert appointment.preferred_date_time == datetime(2026, 1, 20, 15, 0, tzinfo=UTC)

    def test_success_message_reports_snapshot_after_reset(self, flow, sessions, session):
        _walk_to(flow, sessions, session.session_id, BookingStep.CONFIRM)
        result, _ = _answer(flow, sessions, session.session_id, "confirm")
        assert "Booked Successfully" in result.message
        assert result.appointment_id in result.message
        assert "Jane Doe" in result.message
        assert "Rex" in result.message
        assert "555-123-4567" in result.message

    @pytest.mark.parametrize("answer", ["yes", "YES", "  Confirm  "])
    def test_confirm_synonyms(self, flow, sessions, session, answer):
        _walk_to(flow, sessions, session.session_id, BookingStep.CONFIRM)
        result, _ = _answer(flow, sessions, session.session_id, answer)
        assert result.appointment_created is True

    def test_answers_are_trimmed(self, flow, sessions, session):
        _walk_to(flow, sessions, session.session_id, BookingStep.OWNER_NAME)
        _, stored = _answer(flow, sessions, session.session_id, "   Jane Doe   ")
        assert stored.booking_state.collected_data.owner_name == "Jane Doe"


# ── Entering the flow ────────────────────────────────────────────────


class TestStart:
    def test_trigger_message_is_not_taken_as_owner_name(self, flow, sessions, session):
        _, stored = _answer(flow, sessions, session.session_id, "Jane wants to book")
        assert stored.booking_state.collected_data.owner_name is None
        assert stored.booking_state.step == BookingStep.OWNER_NAME

    def test_start_clears_leftover_data(self, flow, sessions, session):
        session.booking_state.collected_data.owner_name = "Old Owner"
        sessions.save(session)
        _, stored = _answer(flow, sessions, session.session_id, "book")
        assert stored.booking_state.collected_data == CollectedData()

    def test_start_stamps_updated_at(self, flow, sessions, session, clock):
        _, stored = _answer(flow, sessions, session.session_id, "book")
        assert stored.booking_state.updated_at == clock.now

    def test_is_in_progress(self, flow, sessions, session):
        assert flow.is_in_progress(session) is False
        flow.advance(session, "book")
        assert flow.is_in_progress(session) is True


# ── Re-prompts ───────────────────────────────────────────────────────


class TestReprompts:
    def test_short_owner_name(self, flow, sessions, session):
        _walk_to(flow, sessions, session.session_id, BookingStep.OWNER_NAME)
        result, stored = _answer(flow, sessions, session.session_id, "J")
        assert result.message == INVALID_OWNER_NAME
        assert stored.booking_state.step == BookingStep.OWNER_NAME
        assert stored.booking_state.collected_data.owner_name is None

    def test_blank_pet_name(self, flow, sessions, session):
        _walk_to(flow, sessions, session.session_id, BookingStep.PET_NAME)
        result, stored = _answer(flow, sessions, session.session_id, "   ")
        assert result.message == INVALID_PET_NAME
        assert stored.booking_state.step == BookingStep.PET_NAME

    def test_invalid_phone_leaves_step_and_data_unchanged(self, flow, sessions, session):
        before = _walk_to(flow, sessions, session.session_id, BookingStep.PHONE)
        result, stored = _answer(flow, sessions, session.session_id, "123")
        assert result.message == INVALID_PHONE
        assert stored.booking_state.step == BookingStep.PHONE
        assert stored.booking_state.collected_data.phone_number is None
        assert stored.booking_state.collected_data == before.booking_state.collected_data

    def test_unparseable_date(self, flow, sessions, session):
        _walk_to(flow, sessions, session.session_id, BookingStep.DATE_TIME)
        result, stored = _answer(flow, sessions, session.session_id, "blah blah")
        assert result.message == UNPARSEABLE_DATE
        assert stored.booking_state.step == BookingStep.DATE_TIME
        assert stored.booking_state.collected_data.preferred_date_time is None

    def test_out_of_range_offset_is_unparseable(self, flow, sessions, session):
        _walk_to(flow, sessions, session.session_id, BookingStep.DATE_TIME)
        result, stored = _answer(flow, sessions, session.session_id, "2026-01-20T15:00+25:00")
        assert result.message == UNPARSEABLE_DATE
        assert stored.booking_state.step == BookingStep.DATE_TIME

    def test_past_date(self, flow, sessions, session):
        _walk_to(flow, sessions, session.session_id, BookingStep.DATE_TIME)
        result, stored = _answer(flow, sessions, session.session_id, "December 25, 2025 at 10:00 AM")
        assert result.message == PAST_DATE
        assert stored.booking_state.step == BookingStep.DATE_TIME
        assert stored.booking_state.collected_data.preferred_date_time is None

    def test_date_equal_to_now_is_accepted(self, flow, sessions, session, clock):
        _walk_to(flow, sessions, session.session_id, BookingStep.DATE_TIME)
        _, stored = _answer(flow, sessions, session.session_id, clock.now.isoformat())
        assert stored.booking_state.step == BookingStep.CONFIRM

    def test_unclear_confirmation(self, flow, sessions, appointments, session):
        _walk_to(flow, sessions, session.session_id, BookingStep.CONFIRM)
        result, stored = _answer(flow, sessions, session.session_id, "maybe later")
        assert result.message == CONFIRM_OR_CANCEL
        assert stored.booking_state.step == BookingStep.CONFIRM
        assert appointments.list_for_session(session.session_id) == []

    def test_reprompt_does_not_persist(self, flow, sessions, session):
        stored = _walk_to(flow, sessions, session.session_id, BookingStep.PHONE)
        with patch.object(sessions, "save", wraps=sessions.save) as save:
            flow.advance(stored, "123")
        save.assert_not_called()


# ── Cancellation and recovery ────────────────────────────────────────


class TestCancellation:
    @pytest.mark.parametrize("answer", ["cancel", "No", "CANCEL"])
    def test_cancel_resets_without_appointment(self, flow, sessions, appointments, session, answer):
        _walk_to(flow, sessions, session.session_id, BookingStep.CONFIRM)
        result, stored = _answer(flow, sessions, session.session_id, answer)
        assert result.message == BOOKING_CANCELLED
        assert result.appointment_created is False
        assert stored.booking_state.in_progress is False
        assert stored.booking_state.step == BookingStep.IDLE
        assert stored.booking_state.collected_data == CollectedData()
        assert appointments.list_for_session(session.session_id) == []

    def test_inconsistent_state_is_reset(self, flow, sessions, session):
        session.booking_state.in_progress = True
        session.booking_state.step = BookingStep.IDLE
        sessions.save(session)
        result, stored = _answer(flow, sessions, session.session_id, "hello")
        assert result.message == START_OVER
        assert stored.booking_state.in_progress is False

    def test_new_booking_after_completion_starts_fresh(self, flow, sessions, session):
        _walk_to(flow, sessions, session.session_id, BookingStep.CONFIRM)
        _answer(flow, sessions, session.session_id, "confirm")
        result, stored = _answer(flow, sessions, session.session_id, "book another one")
        assert stored.booking_state.step == BookingStep.OWNER_NAME
        assert stored.booking_state.collected_data == CollectedData()


# ── Concurrent confirmation ──────────────────────────────────────────


class TestConcurrentConfirm:
    def test_second_confirm_of_same_state_books_nothing(self, flow, sessions, appointments, session):
        _walk_to(flow, sessions, session.session_id, BookingStep.CONFIRM)
        first = sessions.get(session.session_id)
        second = sessions.get(session.session_id)

        assert flow.advance(first, "confirm").appointment_created is True
        with pytest.raises(SessionConflictError):
            flow.advance(second, "confirm")

        assert len(appointments.list_for_session(session.session_id)) == 1

    def test_failed_insert_restores_booking(self, flow, sessions, appointments, session):
        _walk_to(flow, sessions, session.session_id, BookingStep.CONFIRM)
        with patch.object(appointments, "create", side_effect=StoreError("db down")):
            with pytest.raises(StoreError):
                _answer(flow, sessions, session.session_id, "confirm")

        stored = sessions.get(session.session_id)
        assert stored.booking_state.in_progress is True
        assert stored.booking_state.step == BookingStep.CONFIRM
        assert stored.booking_state.collected_data.owner_name == "Jane Doe"
        assert appointments.list_for_session(session.session_id) == []
