"""
Services Layer

Round lifecycle and elimination logic:
- Accept domain inputs (IDs, sessions, notification sinks)
- Return domain outputs (models, pending notifications, result dataclasses)
- Do NOT depend on HTTP request/response objects
- Raise lastman.services.errors exceptions; routes translate them to HTTP
"""
