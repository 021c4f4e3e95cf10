"""
Fireside Backend — Highlighting Service
=========================================

What: Server side of Fireside's devotion and study highlights. Readers mark
      passages of an entry; the service stores nothing itself and talks to the
      hosted Supabase project on the reader's behalf.

Architecture:

    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │   AppState / UserSession (state)    │  ← per-user store + gateway
    ├─────────────────────────────────────┤
    │  Services (indexer, renderer, ...)  │  ← offsets, segments, mutations
    ├─────────────────────────────────────┤
    │   Adapters + Schemas (Data)         │  ← backend rows → Highlight
    ├─────────────────────────────────────┤
    │   SupabaseBackend (Persistence)     │  ← PostgREST / RPC over httpx
    └─────────────────────────────────────┘

Offsets everywhere are UTF-16 code units (see fireside.offsets), the unit the
web client and the stored ranges use.
"""

__version__ = "1.0.0"
