from .base import Base

# import models so Alembic/autoloaders can discover mappers
from .admin import Admin  # noqa: F401
from .audit import AuditLog  # noqa: F401
from .participant import Charity, Participant  # noqa: F401
from .score import ScoreEntry  # noqa: F401
from .tier_config import TierConfiguration  # noqa: F401
from .cycle import DrawCycle, DrawStatus  # noqa: F401
from .winning_entry import LedgerStatus, WinningEntry  # noqa: F401

__all__ = [
    "Base",
    "Admin",
    "AuditLog",
    "Charity",
    "Participant",
    "ScoreEntry",
    "TierConfiguration",
    "DrawCycle",
    "DrawStatus",
    "LedgerStatus",
    "WinningEntry",
]
