"""actPulse domain models: re-exports all public model classes.

Other parts of the codebase import from ``src.models`` rather than the
individual submodule.  If you add a new model class, add it to
``__all__`` too.
"""

from __future__ import annotations

from src.models.act import (
    Act,
    ActStatus,
    Event,
    FetchActsError,
    FetchActsResult,
    Geo,
    Location,
    RejectedEvent,
    UpdateErrorRecord,
)

__all__ = [
    "Act",
    "ActStatus",
    "Event",
    "FetchActsError",
    "FetchActsResult",
    "Geo",
    "Location",
    "RejectedEvent",
    "UpdateErrorRecord",
]
