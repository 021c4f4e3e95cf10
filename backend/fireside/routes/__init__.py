# Routes package init
"""
Fireside Backend — API Routes Package
=======================================

Route Inventory:
    - highlights.py: GET    /api/devotions/entries/{id}/render
                     POST   /api/devotions/entries/{id}/highlights
                     DELETE /api/highlights/{id}
    - study.py:      GET    /api/study/series/{id}/highlights
                     POST   /api/study/entries/{id}/sentences/{n}/toggle
    - library.py:    GET    /api/library/highlights
    - health.py:     GET    /health

Routes stay thin: read the request, call a service on the caller's
UserSession, shape the response. Errors are raised as Fireside exceptions and
turned into HTTP responses by the handlers in fireside.main.
"""
