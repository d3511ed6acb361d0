import unittest

from golfdraw.draw.errors import ErrorCategory, InvalidTransitionError
from golfdraw.draw.ledger import ensure_ledger_transition
from golfdraw.draw.lifecycle import DrawAction, allowed_actions, next_status
from golfdraw.models import DrawStatus, LedgerStatus


class DrawLifecycleTests(unittest.TestCase):
    def test_forward_path(self) -> None:
        self.assertEqual(next_status(DrawStatus.OPEN, DrawAction.SIMULATE), DrawStatus.OPEN)
        self.assertEqual(next_status(DrawStatus.OPEN, DrawAction.RUN), DrawStatus.COMPLETED)
        self.assertEqual(next_status(DrawStatus.COMPLETED, DrawAction.RUN), DrawStatus.COMPLETED)
        self.assertEqual(
            next_status(DrawStatus.COMPLETED, DrawAction.PUBLISH), DrawStatus.PUBLISHED
        )
        self.assertEqual(next_status(DrawStatus.COMPLETED, DrawAction.RESET), DrawStatus.OPEN)

    def test_rejected_transitions(self) -> None:
        rejected = [
            (DrawStatus.OPEN, DrawAction.PUBLISH),
            (DrawStatus.OPEN, DrawAction.RESET),
            (DrawStatus.COMPLETED, DrawAction.SIMULATE),
            (DrawStatus.PUBLISHED, DrawAction.RUN),
            (DrawStatus.PUBLISHED, DrawAction.PUBLISH),
            (DrawStatus.PUBLISHED, DrawAction.RESET),
            (DrawStatus.PUBLISHED, DrawAction.SIMULATE),
        ]
        for status, action in rejected:
            with self.subTest(status=status, action=action):
                with self.assertRaises(InvalidTransitionError) as ctx:
                    next_status(status, action)
                self.assertEqual(ctx.exception.category, ErrorCategory.INVALID_TRANSITION)
                self.assertEqual(ctx.exception.current, status.value)

    def test_accepts_plain_strings(self) -> None:
        self.assertEqual(next_status("open", "run"), DrawStatus.COMPLETED)

    def test_published_is_terminal(self) -> None:
        self.assertEqual(allowed_actions(DrawStatus.PUBLISHED), [])


class LedgerTransitionTests(unittest.TestCase):
    def test_forward_moves_are_allowed(self) -> None:
        ensure_ledger_transition(LedgerStatus.PENDING, LedgerStatus.VERIFIED)
        ensure_ledger_transition(LedgerStatus.PENDING, LedgerStatus.PAID)
        ensure_ledger_transition(LedgerStatus.VERIFIED, LedgerStatus.PAID)

    def test_backward_and_repeated_moves_are_rejected(self) -> None:
        for current, target in [
            (LedgerStatus.VERIFIED, LedgerStatus.PENDING),
            (LedgerStatus.VERIFIED, LedgerStatus.VERIFIED),
            (LedgerStatus.PAID, LedgerStatus.VERIFIED),
            (LedgerStatus.PAID, LedgerStatus.PENDING),
            (LedgerStatus.PAID, LedgerStatus.PAID),
        ]:
            with self.subTest(current=current, target=target):
                with self.assertRaises(InvalidTransitionError):
                    ensure_ledger_transition(current, target)


if __name__ == "__main__":
    unittest.main()
