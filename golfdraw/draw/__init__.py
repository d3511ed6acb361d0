"""Monthly draw subsystem: combination derivation, matching, allocation and lifecycle."""

from .allocation import Allocation, TierSettings, allocate_prize_pool, split_donation
from .engine import DrawEngine, DrawOutcome, DrawPreview, PublishOutcome
from .errors import (
    ConcurrencyConflictError,
    DrawEngineError,
    ErrorCategory,
    InsufficientDiversityError,
    InvalidScoreRangeError,
    InvalidTierConfigurationError,
    InvalidTransitionError,
    NoScoreDataError,
    NotFoundError,
    PreconditionError,
    UpstreamUnavailableError,
)
from .export import winner_audit_rows, write_winners_csv
from .frequency import WinningCombination, select_winning_combination
from .history import JackpotHistory, jackpot_history
from .ledger import MANUAL_PAYMENT_REFERENCE, BatchPayoutResult, payable_winners_by_cycle
from .lifecycle import DrawAction
from .matching import classify_tier, count_matches
from .schedule import SCORE_RANGE_PRESETS

__all__ = [
    "Allocation",
    "TierSettings",
    "allocate_prize_pool",
    "split_donation",
    "DrawEngine",
    "DrawOutcome",
    "DrawPreview",
    "PublishOutcome",
    "ConcurrencyConflictError",
    "DrawEngineError",
    "ErrorCategory",
    "InsufficientDiversityError",
    "InvalidScoreRangeError",
    "InvalidTierConfigurationError",
    "InvalidTransitionError",
    "NoScoreDataError",
    "NotFoundError",
    "PreconditionError",
    "UpstreamUnavailableError",
    "winner_audit_rows",
    "write_winners_csv",
    "WinningCombination",
    "select_winning_combination",
    "JackpotHistory",
    "jackpot_history",
    "MANUAL_PAYMENT_REFERENCE",
    "BatchPayoutResult",
    "payable_winners_by_cycle",
    "DrawAction",
    "classify_tier",
    "count_matches",
    "SCORE_RANGE_PRESETS",
]
