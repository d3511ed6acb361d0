"""Prize pool allocation across match tiers.

All amounts are integer cents. Tier 5 and tier 4 shares of the base pool
are floored and tier 3 takes what is left, so the three shares always sum to
the base pool.

Money leaving a cycle undisbursed travels on two separate paths:

* the jackpot rollover, which is the unclaimed tier-5 pool. The tier-5 pool
  never exceeds the jackpot cap, so neither does the rollover. It feeds the
  next cycle's tier-5 pool.
* the carry, made of unclaimed tier-4/3 pools and the cents left over by
  per-winner division. It feeds the next cycle's tier-4 and tier-3 pools in
  proportion to their percentages.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping

from .errors import InvalidTierConfigurationError

TIERS = (5, 4, 3)


@dataclass(frozen=True)
class TierSettings:
    """Immutable snapshot of the prize configuration used by one computation.

    Attributes
    ----------
    contribution_cents : int
        Amount each eligible subscriber adds to the base pool.
    tier5_percent, tier4_percent, tier3_percent : int
        Share of the base pool per tier; must sum to 100.
    jackpot_cap_cents : int
        Upper bound of the tier-5 pool after the rollover is added.
    version : int
        Configuration version the snapshot was taken from; ``0`` for the
        built-in defaults.
    """

    contribution_cents: int
    tier5_percent: int
    tier4_percent: int
    tier3_percent: int
    jackpot_cap_cents: int
    version: int = 0

    def __post_init__(self) -> None:
        percentages = (self.tier5_percent, self.tier4_percent, self.tier3_percent)
        if any(not isinstance(p, int) or p < 0 or p > 100 for p in percentages):
            raise InvalidTierConfigurationError(
                f"Tier percentages must be integers between 0 and 100, got {percentages}"
            )
        if sum(percentages) != 100:
            raise InvalidTierConfigurationError(
                f"Tier percentages must sum to 100, got {sum(percentages)}"
            )
        if self.contribution_cents < 0:
            raise InvalidTierConfigurationError("contribution_cents must not be negative")
        if self.jackpot_cap_cents <= 0:
            raise InvalidTierConfigurationError("jackpot_cap_cents must be positive")

    def percent(self, tier: int) -> int:
        return {5: self.tier5_percent, 4: self.tier4_percent, 3: self.tier3_percent}[tier]


@dataclass(frozen=True)
class TierAllocation:
    pool_cents: int
    winners: int
    payout_cents: int

    @property
    def disbursed_cents(self) -> int:
        return self.payout_cents * self.winners


@dataclass(frozen=True)
class Allocation:
    """Outcome of :func:`allocate_prize_pool`."""

    base_pool_cents: int
    rollover_in_cents: int
    tiers: Mapping[int, TierAllocation] = field(default_factory=dict)
    carry_in_cents: int = 0
    cap_diversion_cents: int = 0
    jackpot_cap_reached: bool = False
    remainder_cents: int = 0
    rollover_out_cents: int = 0
    carry_out_cents: int = 0

    @property
    def total_pool_cents(self) -> int:
        return self.base_pool_cents + self.rollover_in_cents + self.carry_in_cents

    @property
    def undisbursed_cents(self) -> int:
        return self.rollover_out_cents + self.carry_out_cents

    @property
    def disbursed_cents(self) -> int:
        return sum(t.disbursed_cents for t in self.tiers.values())

    def to_json(self) -> dict:
        return {
            "base_pool_cents": self.base_pool_cents,
            "rollover_in_cents": self.rollover_in_cents,
            "carry_in_cents": self.carry_in_cents,
            "total_pool_cents": self.total_pool_cents,
            "jackpot_cap_reached": self.jackpot_cap_reached,
            "cap_diversion_cents": self.cap_diversion_cents,
            "tiers": {
                str(tier): {
                    "pool_cents": t.pool_cents,
                    "winners": t.winners,
                    "payout_cents": t.payout_cents,
                }
                for tier, t in self.tiers.items()
            },
            "remainder_cents": self.remainder_cents,
            "rollover_out_cents": self.rollover_out_cents,
            "carry_out_cents": self.carry_out_cents,
        }


def split_base_pool(base_pool_cents: int, settings: TierSettings) -> dict[int, int]:
    """Split ``base_pool_cents`` into tier shares that sum exactly to it."""
    tier5 = base_pool_cents * settings.tier5_percent // 100
    tier4 = base_pool_cents * settings.tier4_percent // 100
    return {5: tier5, 4: tier4, 3: base_pool_cents - tier5 - tier4}


def split_carry(carry_cents: int, settings: TierSettings) -> dict[int, int]:
    """Split a carry between tiers 4 and 3 by their relative percentages.

    Tier 4 is floored and tier 3 takes the rest; with both percentages at
    zero the whole carry lands in tier 3.
    """
    lower = settings.tier4_percent + settings.tier3_percent
    tier4 = carry_cents * settings.tier4_percent // lower if lower else 0
    return {4: tier4, 3: carry_cents - tier4}


def allocate_prize_pool(
    eligible_count: int,
    settings: TierSettings,
    rollover_in_cents: int,
    winner_counts: Mapping[int, int],
    carry_in_cents: int = 0,
) -> Allocation:
    """Compute tier pools, per-winner payouts and what moves to the next cycle.

    Parameters
    ----------
    eligible_count : int
        Subscribers counted toward the pool.
    settings : TierSettings
        Configuration snapshot to allocate with.
    rollover_in_cents : int
        Jackpot rollover from the previous cycle; added to the tier-5 pool.
    winner_counts : Mapping[int, int]
        Number of winners per tier; missing tiers count as zero.
    carry_in_cents : int, default: 0
        Carry from the previous cycle; added to the tier-4 and tier-3 pools.

    Returns
    -------
    Allocation
        Figures satisfying
        ``base + rollover_in + carry_in == disbursed + rollover_out + carry_out``.

    Notes
    -----
    When the tier-5 pool exceeds ``settings.jackpot_cap_cents`` the excess is
    moved to the tier-4 pool of the same cycle, so ``rollover_out_cents`` is
    never above the cap.
    """
    if eligible_count < 0:
        raise ValueError("eligible_count must not be negative")
    if rollover_in_cents < 0 or carry_in_cents < 0:
        raise ValueError("amounts carried in must not be negative")
    if any(winner_counts.get(tier, 0) < 0 for tier in TIERS):
        raise ValueError("winner counts must not be negative")

    base_pool = eligible_count * settings.contribution_cents
    pools = split_base_pool(base_pool, settings)
    pools[5] += rollover_in_cents
    for tier, amount in split_carry(carry_in_cents, settings).items():
        pools[tier] += amount

    diversion = 0
    if pools[5] > settings.jackpot_cap_cents:
        diversion = pools[5] - settings.jackpot_cap_cents
        pools[5] = settings.jackpot_cap_cents
        pools[4] += diversion

    tiers: dict[int, TierAllocation] = {}
    remainder = 0
    unclaimed: dict[int, int] = {}
    for tier in TIERS:
        winners = winner_counts.get(tier, 0)
        pool = pools[tier]
        if winners:
            payout, leftover = divmod(pool, winners)
            remainder += leftover
        else:
            payout = 0
            unclaimed[tier] = pool
        tiers[tier] = TierAllocation(pool_cents=pool, winners=winners, payout_cents=payout)

    rollover_out = unclaimed.pop(5, 0)
    allocation = Allocation(
        base_pool_cents=base_pool,
        rollover_in_cents=rollover_in_cents,
        carry_in_cents=carry_in_cents,
        tiers=tiers,
        cap_diversion_cents=diversion,
        jackpot_cap_reached=diversion > 0,
        remainder_cents=remainder,
        rollover_out_cents=rollover_out,
        carry_out_cents=sum(unclaimed.values()) + remainder,
    )
    assert allocation.rollover_out_cents <= settings.jackpot_cap_cents, "rollover above jackpot cap"
    assert (
        allocation.total_pool_cents
        == allocation.disbursed_cents + allocation.undisbursed_cents
    ), "prize allocation does not balance"
    return allocation


def split_donation(gross_cents: int, donation_percentage: int) -> tuple[int, int]:
    """Return ``(donation_cents, net_cents)`` for a gross prize."""
    if not 0 <= donation_percentage <= 100:
        raise ValueError("donation_percentage must be between 0 and 100")
    donation = gross_cents * donation_percentage // 100
    return donation, gross_cents - donation


__all__ = [
    "TIERS",
    "Allocation",
    "TierAllocation",
    "TierSettings",
    "allocate_prize_pool",
    "split_base_pool",
    "split_carry",
    "split_donation",
]
