# Services package init
"""
Fireside Backend — Services Layer
===================================

Service Inventory:
    - indexer:           sentence ranges and DOM selection → UTF-16 range
    - renderer:          highlights + text → non-overlapping segments
    - HighlightStore:    per-user cache of highlights by content item
    - MutationGateway:   optimistic create/delete with rollback
    - HighlightBackend:  abstract remote store (SupabaseBackend implements it)
    - ContentService:    devotion and study entry bodies
    - StudyHighlightService: sentence-index highlights on study entries
    - LibraryService:    every highlight of the caller, newest first

The indexer and renderer are pure functions; everything else is async and
talks to the backend only through a HighlightBackend.
"""
