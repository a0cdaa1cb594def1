"""Vet Assistant — backend for an embeddable veterinary chat widget.

Architecture Overview
=====================

Every user message goes through a small **LangGraph** StateGraph:

1. **router** — keyword gate, no model call. A message joins the booking
   flow when a booking is already in progress for the session or when it
   reads like a booking request ("I'd like to book a checkup"). Questions
   about existing appointments ("when is my appointment?") do not.

2. **booking** — a five-step form-filling dialogue (owner name → pet name →
   phone → date/time → confirm) that validates each answer, parses
   natural-language dates and creates a *pending* appointment on confirm.

3. **assistant** — everything else is answered by Claude via
   ``langchain-anthropic`` with a veterinary-only system prompt and the
   session's booked appointments as context.

Key Design Decisions
--------------------
- **Persistence**: sessions (with their booking state) and appointments live
  in MongoDB; an in-memory backend is used for development and tests.
- **Concurrency**: one message per session at a time (per-session lock) plus
  an optimistic ``version`` check on every session save.
- **Abandoned bookings**: a booking left untouched for
  ``BOOKING_TIMEOUT_MINUTES`` is reset before the next message is routed.
- **Dual Interface**: FastAPI server (production) + CLI chat loop (development).

Package Structure
-----------------
- ``vet_assistant/agent.py`` — LangGraph conversation router
- ``vet_assistant/booking/`` — intent gate, validators, date parser, booking flow
- ``vet_assistant/config.py`` — immutable settings from env / SSM
- ``vet_assistant/models.py`` — session, booking state and appointment records
- ``vet_assistant/prompts.py`` — system prompt and canned texts
- ``vet_assistant/services/`` — stores, chat service, responder, metrics, locks
- ``vet_assistant/api/`` — FastAPI routes and Pydantic schemas
- ``vet_assistant/server.py`` — FastAPI application
- ``vet_assistant/main.py`` — CLI chat interface
"""
