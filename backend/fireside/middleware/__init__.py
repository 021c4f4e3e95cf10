# Middleware package init
"""
Fireside Backend — Middleware Package
=======================================

What:  Cross-cutting concerns applied to every request.

Middleware Chain:
    Request → [Request ID] → [Access Log] → [GZip] → [CORS] → Route Handler

    1. Request ID first, so every later log line can carry it
    2. Access log records method, path, status and duration once the
       response is known
    3. GZip/CORS are Starlette's own middleware

Responses unwind in reverse, so X-Request-ID is on every response, errors
included.
"""
