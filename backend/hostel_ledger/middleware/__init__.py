"""
Hostel Ledger Backend: Middleware Package
===========================================

Cross-cutting concerns applied to every request.

Middleware Chain (outermost first):
    Request → [Request ID] → [Logging] → [Rate Limit] → [GZip] → [CORS] → Route

    - Request ID runs first so every later layer, including 429 responses
      and the access log, can quote the same correlation ID.
    - Logging wraps Rate Limit, so rejected requests are logged too.
"""
