"""Guarded transitions of the draw cycle lifecycle.

::

    open --run--> completed --publish--> published
    completed --run--> completed
    completed --reset--> open
    open --simulate--> open
"""

from __future__ import annotations

import enum

from ..models.cycle import DrawStatus
from .errors import InvalidTransitionError


class DrawAction(str, enum.Enum):
    SIMULATE = "simulate"
    RUN = "run"
    PUBLISH = "publish"
    RESET = "reset"


TRANSITIONS: dict[tuple[DrawStatus, DrawAction], DrawStatus] = {
    (DrawStatus.OPEN, DrawAction.SIMULATE): DrawStatus.OPEN,
    (DrawStatus.OPEN, DrawAction.RUN): DrawStatus.COMPLETED,
    (DrawStatus.COMPLETED, DrawAction.RUN): DrawStatus.COMPLETED,
    (DrawStatus.COMPLETED, DrawAction.PUBLISH): DrawStatus.PUBLISHED,
    (DrawStatus.COMPLETED, DrawAction.RESET): DrawStatus.OPEN,
}


def next_status(current: DrawStatus, action: DrawAction) -> DrawStatus:
    """Return the status reached by applying ``action`` in ``current``.

    Raises
    ------
    InvalidTransitionError
        If the action is not available in ``current``.
    """
    try:
        return TRANSITIONS[(DrawStatus(current), DrawAction(action))]
    except KeyError:
        raise InvalidTransitionError(
            f"Cannot {DrawAction(action).value} a draw that is {DrawStatus(current).value}",
            current=DrawStatus(current).value,
            action=DrawAction(action).value,
        ) from None


def allowed_actions(current: DrawStatus) -> list[DrawAction]:
    return [action for (status, action) in TRANSITIONS if status == current]


__all__ = ["DrawAction", "TRANSITIONS", "allowed_actions", "next_status"]
