"""Deposit (DP) allocation and payment status progression"""
from decimal import Decimal
from typing import Iterable, Tuple

from domain.enums import PaymentStatus
from domain.errors import InvalidDepositTierError, BookingRuleError
from domain.value_objects import DepositAllocation, round_money

DEFAULT_DP_PERCENTAGES: Tuple[int, ...] = (30, 50, 70, 100)


def next_payment_status(
    current: PaymentStatus,
    verified_total: int,
    dp_amount: int,
    total_amount: int
) -> PaymentStatus:
    """Derive the payment status after verified payments change.

    The status only ever moves forward: ``fully_paid`` and ``refunded`` are
    kept as they are, and ``dp_received`` never falls back to ``dp_pending``.
    """
    if current in (PaymentStatus.FULLY_PAID, PaymentStatus.REFUNDED):
        return current

    if verified_total >= total_amount:
        return PaymentStatus.FULLY_PAID

    if verified_total >= dp_amount and current == PaymentStatus.DP_PENDING:
        return PaymentStatus.DP_RECEIVED

    return current


class DepositAllocator:
    """Split a booking total into deposit and remaining balance"""

    def __init__(self, allowed_percentages: Iterable[int] = DEFAULT_DP_PERCENTAGES):
        self.allowed_percentages = tuple(sorted(set(allowed_percentages)))

    def allocate(self, total_amount: int, dp_percentage: int) -> DepositAllocation:
        """Compute the deposit and the remaining balance.

        The remaining balance is derived by subtraction so that
        ``dp_amount + remaining_amount == total_amount`` holds exactly.
        """
        if dp_percentage not in self.allowed_percentages:
            raise InvalidDepositTierError(
                f"Deposit percentage must be one of {', '.join(map(str, self.allowed_percentages))}",
                field="dp_percentage",
                value=dp_percentage,
                constraint="in " + ",".join(map(str, self.allowed_percentages))
            )

        if total_amount < 0:
            raise BookingRuleError(
                "Total amount cannot be negative",
                field="total_amount",
                value=total_amount,
                constraint=">= 0"
            )

        dp_amount = round_money(Decimal(total_amount) * dp_percentage / 100)
        return DepositAllocation(
            total_amount=total_amount,
            dp_percentage=dp_percentage,
            dp_amount=dp_amount,
            remaining_amount=total_amount - dp_amount
        )
