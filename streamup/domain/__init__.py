"""
Domain layer containing the session core's business logic.

Submodules:
- live: Live session logic (lifecycle, co-broadcast, chat).
- progression: Account progression (experience, perks, badges, challenges).
- utils: Domain-specific utilities (e.g., ID generation).
"""
