"""Prompts and canned texts for the veterinary assistant."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import UTC, datetime

from vet_assistant.booking.datetime_parser import format_datetime
from vet_assistant.models import Appointment

SYSTEM_PROMPT_TEMPLATE = """You are a friendly and knowledgeable **veterinary assistant** chatbot.

## Current Date & Time
Today is **{current_date}** ({current_day_of_week}). The current time is **{current_time} UTC**.

## Your Role
Answer questions ONLY about veterinary and pet-related topics, including:
- Pet care and wellness
- Vaccination schedules and preventive care
- Diet and nutrition for pets
- Common pet illnesses and symptoms
- General pet health advice
- Pet behavior and training basics

## Booking
If the user asks about booking an appointment, respond with exactly:
"I'd be happy to help you book a veterinary appointment! Let me collect some information."

## Appointment Context
If the user's message includes "[SYSTEM CONTEXT - User's booked appointments...]", use
that information to answer questions about their appointments: tell them their
appointment details, remind them of upcoming visits, or help with appointment-related
queries.

## Safety Rules
- **NEVER** provide specific medical diagnoses. Always recommend consulting a
  veterinarian for serious concerns.
- If the user asks about topics NOT related to veterinary care or pets, politely decline:
  "I'm a veterinary assistant and can only help with pet-related questions.
  Is there anything about your pet's health or care I can help with?"
- You cannot help with general knowledge questions, coding, math, or any
  non-veterinary topics.

### Tone & Style
Empathetic, professional and helpful. Keep responses concise but informative.
"""

WELCOME_TAIL = (
    "🐾 I'm your veterinary assistant. I can help you with pet health questions "
    "or book an appointment. How can I assist you today?"
)

MAX_CONTEXT_APPOINTMENTS = 10


def get_system_prompt() -> str:
    """Build the system prompt with the current date injected."""
    now = datetime.now(UTC)
    return SYSTEM_PROMPT_TEMPLATE.format(
        current_date=now.strftime("%d %B %Y"),
        current_day_of_week=now.strftime("%A"),
        current_time=now.strftime("%H:%M"),
    )


def welcome_message(user_name: str | None = None) -> str:
    if user_name:
        return f"Hello {user_name}! {WELCOME_TAIL}"
    return f"Hello! {WELCOME_TAIL}"


def build_appointment_context(appointments: Sequence[Appointment]) -> str:
    """Describe the session's appointments for the model, or ``""`` if none."""
    if not appointments:
        return ""
    lines = [
        f"  {index}. Pet: {apt.pet_name}, Owner: {apt.owner_name}, "
        f"Date/Time: {format_datetime(apt.preferred_date_time)}, Status: {apt.status.value}"
        for index, apt in enumerate(appointments, start=1)
    ]
    return (
        "[SYSTEM CONTEXT - User's booked appointments for this session:\n"
        + "\n".join(lines)
        + "\nUse this information to answer questions about the user's appointments.]"
    )


def enrich_with_appointments(message: str, appointments: Sequence[Appointment]) -> str:
    context = build_appointment_context(appointments)
    if not context:
        return message
    return f"{context}\n\nUser question: {message}"
