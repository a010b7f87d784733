"""
MediaFlow — Folder access control and editorial workflow for media libraries.

Packages:
    mediaflow.access    — permission resolution and enforcement
    mediaflow.workflow  — system folders, inbox routing, review/approval states
    mediaflow.admin     — settings surface
    mediaflow.db        — SQLAlchemy reference storage
    mediaflow.engine    — config, errors, caching, logging, events
"""

__version__ = "1.0.0"
__all__ = ["access", "workflow", "admin", "db", "engine"]
