"""
Data access layer.

Design rules:
- Consumers call ONLY `DataService` (service.py).
- Every remote call is wrapped so it can fall back to the local store.
- No env var reads here (config-only).
"""
