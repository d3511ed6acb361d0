"""Account-management collaborators."""

from .api import AccountsClient
from .directory import AccountDirectory, LocalAccountDirectory, ParticipantStanding

__all__ = [
    "AccountDirectory",
    "AccountsClient",
    "LocalAccountDirectory",
    "ParticipantStanding",
]
