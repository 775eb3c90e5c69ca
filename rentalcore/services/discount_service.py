"""Discount code validation and redemption."""

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional

from rentalcore.exceptions import DiscountRejectedError
from rentalcore.models.discount import DiscountCode, normalize_code
from rentalcore.services.common import _store, discount_from_dict
from rentalcore.utils.constants import DiscountType, DiscountReason, DISCOUNT_REASON_MESSAGES
from rentalcore.utils.money import ZERO

logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")


@dataclass(frozen=True)
class DiscountResult:
    valid: bool
    amount: Decimal = ZERO
    reason: Optional[str] = None
    code: Optional[str] = None

    @property
    def message(self) -> Optional[str]:
        return DISCOUNT_REASON_MESSAGES.get(self.reason) if self.reason else None

    def raise_if_invalid(self):
        if not self.valid:
            raise DiscountRejectedError(self.reason, f"Error: {self.message}")


class DiscountService:

    @staticmethod
    def rejection(code: DiscountCode, days: int, subtotal_before_discount: Decimal, today: date,
                  group_id: Optional[str] = None) -> Optional[str]:
        """First failing rule, or None. Checks run in a fixed order and stop at the first failure."""
        if not code.is_active:
            return DiscountReason.INACTIVE
        if code.valid_from is not None and today < code.valid_from:
            return DiscountReason.NOT_YET_VALID
        if code.valid_until is not None and today > code.valid_until:
            return DiscountReason.EXPIRED
        if not code.has_uses_left:
            return DiscountReason.EXHAUSTED
        if code.min_days is not None and days < code.min_days:
            return DiscountReason.MIN_DAYS_NOT_MET
        if code.min_amount is not None and subtotal_before_discount < code.min_amount:
            return DiscountReason.MIN_AMOUNT_NOT_MET
        if code.vehicle_groups and group_id is not None and str(group_id) not in code.vehicle_groups:
            return DiscountReason.GROUP_NOT_ELIGIBLE
        return None

    @staticmethod
    def amount_for(code: DiscountCode, subtotal_before_discount: Decimal) -> Decimal:
        """Reduction, clamped to [0, subtotal] so the discounted subtotal never goes negative."""
        if code.type == DiscountType.PERCENTAGE:
            amount = subtotal_before_discount * code.value / HUNDRED
        else:
            amount = code.value
        return max(ZERO, min(amount, subtotal_before_discount))

    @staticmethod
    def evaluate(code: Optional[DiscountCode], *, days: int, subtotal_before_discount: Decimal, today: date,
                 group_id: Optional[str] = None) -> DiscountResult:
        """Validate `code` for a booking and compute its reduction. `today` is explicit, never read from a clock."""
        if code is None:
            return DiscountResult(valid=False, reason=DiscountReason.NOT_FOUND)
        reason = DiscountService.rejection(code, days, subtotal_before_discount, today, group_id)
        if reason:
            return DiscountResult(valid=False, reason=reason, code=code.code)
        return DiscountResult(valid=True, amount=DiscountService.amount_for(code, subtotal_before_discount),
                              code=code.code)

    @staticmethod
    def lookup(code: Optional[str], store=None) -> Optional[DiscountCode]:
        st = store or _store()
        return discount_from_dict(st.get_discount(code)) if normalize_code(code) else None

    @staticmethod
    def redeem(code: str, store=None):
        """
        Count one use of `code`. The max_uses check and the increment happen as one
        step inside the store, so concurrent redemptions cannot overshoot.
        Raises DiscountRejectedError(exhausted) when the last use was taken meanwhile.
        """
        st = store or _store()
        if st.get_discount(code) is None:
            raise DiscountRejectedError(
                DiscountReason.NOT_FOUND, f"Error: {DISCOUNT_REASON_MESSAGES[DiscountReason.NOT_FOUND]}"
            )
        if not st.redeem_discount(code):
            logger.info("Discount %s could not be redeemed", normalize_code(code))
            raise DiscountRejectedError(
                DiscountReason.EXHAUSTED, f"Error: {DISCOUNT_REASON_MESSAGES[DiscountReason.EXHAUSTED]}"
            )
        logger.info("Discount %s redeemed", normalize_code(code))
