"""Outstanding-balance arithmetic shared by every view that reports money owed."""
from decimal import Decimal
from typing import Iterable, NamedTuple, Union

ZERO = Decimal("0.00")
CENT = Decimal("0.01")


class Balance(NamedTuple):
    total_paid: Decimal
    outstanding: Decimal
    is_fully_paid: bool

    def as_dict(self) -> dict:
        return {
            "total_paid": self.total_paid,
            "outstanding": self.outstanding,
            "is_fully_paid": self.is_fully_paid,
        }


def _to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    #floats go through str so 0.1 stays 0.1
    return Decimal(str(value))


def _amount(payment) -> Decimal:
    # accepts Payment instances as well as bare amounts
    return _to_decimal(getattr(payment, "amount", payment))


def compute_balance(course_price: Union[Decimal, int, float, str], payments: Iterable) -> Balance:
    """Return what was paid against a course price and what is still owed.

    ``outstanding`` is ``price - sum(payments)`` floored at zero, so an
    overpaid enrollment reports nothing owed rather than a negative amount.
    """
    price = _to_decimal(course_price)
    total_paid = sum((_amount(p) for p in payments), ZERO).quantize(CENT)
    outstanding = max(ZERO, price - total_paid).quantize(CENT)
    return Balance(total_paid, outstanding, outstanding <= ZERO)


def exceeds_price(course_price, total_paid, amount) -> bool:
    """True when adding ``amount`` to ``total_paid`` would go over the price."""
    return _to_decimal(total_paid) + _to_decimal(amount) > _to_decimal(course_price)
