"""LangGraph conversation router for the veterinary assistant.

Architecture:
  Each inbound message runs through a small StateGraph:

    1. **router**    — no model call; picks ``booking`` when a booking is
                       already in progress or the keyword intent gate fires,
                       otherwise ``assistant``
    2. **booking**   — advances the session's booking dialogue one step
    3. **assistant** — asks the generative model, with the session's booked
                       appointments injected as context

  Routing:
    router → (booking?)   → booking   → END
    router → (assistant?) → assistant → END

  The graph holds no memory of its own: the caller loads the session, runs
  the graph once and persists the session afterwards.
"""

from __future__ import annotations

import logging
from typing import Literal

from langgraph.graph import END, StateGraph
from typing_extensions import TypedDict

from vet_assistant.booking.flow import BookingFlow
from vet_assistant.booking.intent import detect_appointment_intent
from vet_assistant.models import Session
from vet_assistant.prompts import MAX_CONTEXT_APPOINTMENTS, enrich_with_appointments
from vet_assistant.services.responder import VetResponder
from vet_assistant.services.store import AppointmentStore

logger = logging.getLogger(__name__)

Intent = Literal["booking", "assistant"]


class ConversationState(TypedDict, total=False):
    """The state that flows through the graph.

    ``session`` already holds the new user message as its last entry and is
    mutated in place by the booking node.  ``intent`` is set by the router
    and read by the conditional edge.
    """

    session: Session
    message: str
    intent: Intent
    reply: str
    appointment_id: str | None


def classify(session: Session, message: str) -> Intent:
    if BookingFlow.is_in_progress(session):
        return "booking"
    if detect_appointment_intent(message):
        return "booking"
    return "assistant"


def router_node(state: ConversationState) -> dict:
    intent = classify(state["session"], state["message"])
    logger.debug("Session %s routed to %s", state["session"].session_id, intent)
    return {"intent": intent}


def _make_booking_node(flow: BookingFlow):
    def booking_node(state: ConversationState) -> dict:
        result = flow.advance(state["session"], state["message"])
        return {
            "session": state["session"],
            "reply": result.message,
            "appointment_id": result.appointment_id,
        }

    return booking_node


def _make_assistant_node(responder: VetResponder, appointments: AppointmentStore):
    def assistant_node(state: ConversationState) -> dict:
        session = state["session"]
        booked = appointments.list_for_session(
            session.session_id, sort="preferred", limit=MAX_CONTEXT_APPOINTMENTS,
        )
        prompt = enrich_with_appointments(state["message"], booked)
        # The last stored message is the one being answered.
        reply = responder.generate(prompt, session.messages[:-1])
        return {"reply": reply}

    return assistant_node


def route_by_intent(state: ConversationState) -> str:
    if state.get("intent") == "booking":
        return "booking"
    return "assistant"


def create_conversation_graph(
    flow: BookingFlow,
    responder: VetResponder,
    appointments: AppointmentStore,
):
    """Build and compile the conversation graph.

    Invoke it with ``{"session": session, "message": text}``; the result
    carries ``reply`` (and ``appointment_id`` when a booking completed).
    """
    graph = StateGraph(ConversationState)

    graph.add_node("router", router_node)
    graph.add_node("booking", _make_booking_node(flow))
    graph.add_node("assistant", _make_assistant_node(responder, appointments))

    graph.set_entry_point("router")
    graph.add_conditional_edges(
        "router",
        route_by_intent,
        {"booking": "booking", "assistant": "assistant"},
    )
    graph.add_edge("booking", END)
    graph.add_edge("assistant", END)

    return graph.compile()
