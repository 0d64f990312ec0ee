from __future__ import annotations

from datetime import date
from decimal import Decimal


def test_coerce_amount_strips_separators_and_currency_marks():
    from yibaoxiao.modules.extraction.fields import coerce_amount

    assert coerce_amount("1,200.50") == Decimal("1200.50")
    assert coerce_amount("¥ 3，000元") == Decimal("3000")
    assert coerce_amount(300) == Decimal("300")
    assert coerce_amount(12.5) == Decimal("12.5")
    assert coerce_amount("-20") == Decimal("-20")


def test_coerce_amount_defaults_to_zero_for_garbage():
    from yibaoxiao.modules.extraction.fields import coerce_amount

    assert coerce_amount("abc") == Decimal("0")
    assert coerce_amount(None) == Decimal("0")
    assert coerce_amount(True) == Decimal("0")
    assert coerce_amount(float("nan")) == Decimal("0")
    assert coerce_amount({"amount": 1}) == Decimal("0")


def test_coerce_date_formats_and_fallback():
    from yibaoxiao.modules.extraction.fields import coerce_date

    today = date(2024, 3, 1)
    assert coerce_date("2024-01-10", today=today) == "2024-01-10"
    assert coerce_date("2024/01/10", today=today) == "2024-01-10"
    assert coerce_date("2024.01.10", today=today) == "2024-01-10"
    assert coerce_date("2024年1月5日", today=today) == "2024-01-05"
    assert coerce_date("2024-01-10T08:30:00", today=today) == "2024-01-10"
    assert coerce_date(20240110, today=today) == "2024-01-10"
    assert coerce_date("10 Jan 2024", today=today) == "2024-01-10"
    assert coerce_date("2024/01/11 14:32", today=today) == "2024-01-11"
    assert coerce_date("2024年01月11日 14:32", today=today) == "2024-01-11"
    assert coerce_date("2024.01.11 14:32:05", today=today) == "2024-01-11"
    assert coerce_date("2024-01-11 14:32", today=today) == "2024-01-11"
    assert coerce_date("not a date", today=today) == "2024-03-01"
    assert coerce_date("2024-02-30", today=today) == "2024-03-01"
    assert coerce_date(None, today=today) == "2024-03-01"


def test_pick_amount_skips_zero_and_blank_synonyms():
    from yibaoxiao.modules.extraction.fields import AMOUNT_KEYS, pick_amount

    assert pick_amount({"amount": 0, "totalAmount": "88.00"}, AMOUNT_KEYS) == Decimal("88.00")
    assert pick_amount({"amount": "", "fare": "12"}, AMOUNT_KEYS) == Decimal("12")
    assert pick_amount({"amountWithoutTax": "9.43"}, AMOUNT_KEYS) == Decimal("9.43")
    assert pick_amount({}, AMOUNT_KEYS) == Decimal("0")


def test_pick_text_and_int():
    from yibaoxiao.modules.extraction.fields import pick_int, pick_text

    assert pick_text({"departure": "  ", "fromStation": "北京南"}, ("departure", "fromStation")) == "北京南"
    assert pick_text({}, ("x",), default="其他") == "其他"
    assert pick_int({"days": 0, "nights": "3"}, ("days", "nights")) == 3


def test_approval_data_from_bag_tolerates_missing_fields():
    from yibaoxiao.modules.extraction.schemas import ApprovalData

    approval = ApprovalData.from_bag(
        {"approvalNumber": "DD-2024-0091", "eventSummary": "北京出差", "loanAmount": "5,000"}
    )
    assert approval.approval_number == "DD-2024-0091"
    assert approval.loan_amount == Decimal("5000")
    assert approval.event_suffix() == "（北京出差）"

    empty = ApprovalData.from_bag(None)
    assert empty.approval_number is None
    assert empty.event_suffix() == ""
