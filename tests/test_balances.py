from decimal import Decimal
from types import SimpleNamespace

from enrollments.balances import compute_balance, exceeds_price


def test_nothing_paid_owes_full_price():
    balance = compute_balance(Decimal("1000.00"), [])
    assert balance.total_paid == Decimal("0.00")
    assert balance.outstanding == Decimal("1000.00")
    assert balance.is_fully_paid is False


def test_payments_reaching_price_are_fully_paid():
    balance = compute_balance(Decimal("1000.00"), [Decimal("400.00"), Decimal("600.00")])
    assert balance.total_paid == Decimal("1000.00")
    assert balance.outstanding == Decimal("0.00")
    assert balance.is_fully_paid is True


def test_outstanding_never_negative():
    balance = compute_balance(Decimal("500.00"), [Decimal("400.00"), Decimal("400.00")])
    assert balance.total_paid == Decimal("800.00")
    assert balance.outstanding == Decimal("0.00")
    assert balance.is_fully_paid is True


def test_accepts_payment_objects_and_plain_numbers():
    payments = [SimpleNamespace(amount=Decimal("250.50")), SimpleNamespace(amount=Decimal("49.50"))]
    assert compute_balance(1000, payments).total_paid == Decimal("300.00")

    balance = compute_balance(100, [33.3])
    assert balance.total_paid == Decimal("33.30")
    assert balance.outstanding == Decimal("66.70")


def test_free_course_is_paid_without_payments():
    assert compute_balance(Decimal("0.00"), []).is_fully_paid is True


def test_as_dict_keys():
    assert compute_balance(10, [5]).as_dict() == {
        "total_paid": Decimal("5.00"),
        "outstanding": Decimal("5.00"),
        "is_fully_paid": False,
    }


def test_exceeds_price():
    assert exceeds_price(Decimal("1000.00"), Decimal("400.00"), Decimal("600.01")) is True
    assert exceeds_price(Decimal("1000.00"), Decimal("400.00"), Decimal("600.00")) is False
    assert exceeds_price(Decimal("1000.00"), Decimal("0.00"), Decimal("999.99")) is False
