"""Tests for the chat service (session lifecycle and message cycle)."""

from __future__ import annotations

from datetime import timedelta

import pytest

from vet_assistant.models import BookingStep
from vet_assistant.services.chat_service import ChatService, SessionNotFoundError
from vet_assistant.services.responder import GenerationError
from vet_assistant.services.store import SessionConflictError


class TestCreateSession:
    def test_personalised_welcome(self, chat_service, sessions):
        session, welcome = chat_service.create_session(user_name="Alice", pet_name="Buddy", source="web")
        assert welcome.startswith("Hello Alice!")
        stored = sessions.get(session.session_id)
        assert stored.pet_name == "Buddy"
        assert stored.source == "web"
        assert [m.role for m in stored.messages] == ["assistant"]
        assert stored.messages[0].content == welcome
        assert stored.booking_state.step == BookingStep.IDLE

    def test_anonymous_welcome(self, chat_service):
        _, welcome = chat_service.create_session()
        assert welcome.startswith("Hello! ")

    def test_session_ids_are_unique(self, chat_service):
        first, _ = chat_service.create_session()
        second, _ = chat_service.create_session()
        assert first.session_id != second.session_id


class TestSendMessage:
    def test_unknown_session(self, chat_service):
        with pytest.raises(SessionNotFoundError):
            chat_service.send_message("missing", "hello")

    def test_general_question_is_answered_by_model(self, chat_service, sessions, responder):
        session, _ = chat_service.create_session()
        reply = chat_service.send_message(session.session_id, "Can cats eat tuna?")
        assert reply.role == "assistant"
        assert reply.content == responder.generate.return_value
        stored = sessions.get(session.session_id)
        assert [m.role for m in stored.messages] == ["assistant", "user", "assistant"]
        assert stored.messages[1].content == "Can cats eat tuna?"

    def test_full_booking_conversation(self, chat_service, sessions, appointments, responder):
        session, _ = chat_service.create_session()
        sid = session.session_id

        assert "pet owner's name" in chat_service.send_message(sid, "book an appointment").content
        chat_service.send_message(sid, "Jane Doe")
        chat_service.send_message(sid, "Rex")
        chat_service.send_message(sid, "555-123-4567")
        summary = chat_service.send_message(sid, "January 20, 2026 at 3:00 PM").content
        assert "Jane Doe" in summary and "Rex" in summary
        done = chat_service.send_message(sid, "confirm").content

        [appointment] = appointments.list_for_session(sid)
        assert appointment.id in done
        stored = sessions.get(sid)
        assert stored.booking_state.in_progress is False
        assert len(stored.messages) == 1 + 2 * 6
        responder.generate.assert_not_called()

    def test_booking_answers_never_reach_the_model(self, chat_service, responder):
        session, _ = chat_service.create_session()
        chat_service.send_message(session.session_id, "schedule a visit")
        # Would go to the model if no booking were in progress.
        chat_service.send_message(session.session_id, "Jane Doe")
        responder.generate.assert_not_called()

    def test_generation_failure_is_not_persisted(self, chat_service, sessions, responder):
        session, _ = chat_service.create_session()
        responder.generate.side_effect = GenerationError("Failed to generate AI response")
        with pytest.raises(GenerationError):
            chat_service.send_message(session.session_id, "Hello")
        assert len(sessions.get(session.session_id).messages) == 1

    def test_concurrent_writer_is_detected(self, chat_service, sessions):
        session, _ = chat_service.create_session()
        # Simulate another process saving the session behind our back.
        other = sessions.get(session.session_id)
        original_get = sessions.get

        def stale_get(session_id):
            stale = original_get(session_id)
            sessions.save(other)
            return stale

        sessions.get = stale_get
        with pytest.raises(SessionConflictError):
            chat_service.send_message(session.session_id, "book")


class TestAbandonedBookings:
    def test_stale_booking_is_reset_before_routing(self, chat_service, sessions, responder, clock):
        session, _ = chat_service.create_session()
        chat_service.send_message(session.session_id, "book")
        chat_service.send_message(session.session_id, "Jane Doe")

        clock.advance(minutes=31)
        reply = chat_service.send_message(session.session_id, "Is grapes safe for dogs?")

        assert reply.content == responder.generate.return_value
        stored = sessions.get(session.session_id)
        assert stored.booking_state.in_progress is False
        assert stored.booking_state.collected_data.owner_name is None

    def test_booking_within_timeout_continues(self, chat_service, sessions, clock):
        session, _ = chat_service.create_session()
        chat_service.send_message(session.session_id, "book")
        clock.advance(minutes=29)
        chat_service.send_message(session.session_id, "Jane Doe")
        assert sessions.get(session.session_id).booking_state.step == BookingStep.PET_NAME

    def test_stale_booking_with_booking_intent_restarts(self, chat_service, sessions, clock):
        session, _ = chat_service.create_session()
        chat_service.send_message(session.session_id, "book")
        chat_service.send_message(session.session_id, "Jane Doe")
        clock.advance(hours=2)
        reply = chat_service.send_message(session.session_id, "I want to book an appointment")
        assert "pet owner's name" in reply.content
        stored = sessions.get(session.session_id)
        assert stored.booking_state.step == BookingStep.OWNER_NAME
        assert stored.booking_state.collected_data.owner_name is None

    def test_timeout_can_be_disabled(self, sessions, appointments, responder, clock):
        service = ChatService(sessions, appointments, responder, clock=clock, booking_timeout=None)
        session, _ = service.create_session()
        service.send_message(session.session_id, "book")
        clock.advance(days=3)
        service.send_message(session.session_id, "Jane Doe")
        assert sessions.get(session.session_id).booking_state.step == BookingStep.PET_NAME

    def test_zero_timeout_disables_expiry(self, sessions, appointments, responder, clock):
        service = ChatService(
            sessions, appointments, responder, clock=clock, booking_timeout=timedelta(0),
        )
        session, _ = service.create_session()
        service.send_message(session.session_id, "book")
        clock.advance(days=3)
        service.send_message(session.session_id, "Jane Doe")
        assert sessions.get(session.session_id).booking_state.step == BookingStep.PET_NAME
