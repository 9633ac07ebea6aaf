# services - Orchestration layer between the UI and the instrument store
from services import (
    transition_service,
    daily_reset_service,
    visibility,
    identity,
)

__all__ = [
    "transition_service",
    "daily_reset_service",
    "visibility",
    "identity",
]
