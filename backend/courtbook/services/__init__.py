"""
Services Layer

Booking logic that:
- Accepts domain inputs (sessions, identities, slot coordinates, the current instant)
- Returns ORM models or plain dataclasses
- Does NOT depend on HTTP request/response objects
- Raises ReservationError subclasses; routes translate them to HTTP
"""
