"""
Pytest suite for the storefront backend.

Test categories:
- Unit tests: codec, validators, summary formatting (no database)
- Service tests: stock ledger, order pipeline, fan-out against in-memory SQLite
- API tests: the FastAPI app through httpx ASGITransport
"""
