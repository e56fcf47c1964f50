"""
Live session domain logic.

Includes:
- session: Lifecycle controller and per-account session service.
- co_broadcast: Co-broadcaster slot table and invitations.
- chat: Moderated chat log with optimistic sends.
"""
