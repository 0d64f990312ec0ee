from __future__ import annotations

from decimal import Decimal

import pytest


def _loan(**kwargs):
    from yibaoxiao.modules.loans.schemas import LoanRecord

    return LoanRecord(**kwargs)


def test_normalized_approval_numbers_match_exactly():
    from yibaoxiao.modules.extraction.schemas import ApprovalData
    from yibaoxiao.modules.loans.service import match_loans, normalize_approval_number

    assert normalize_approval_number("DD-2024-0091") == "dd20240091"
    assert normalize_approval_number(" dd_2024 0091 ") == "dd20240091"

    matches = match_loans(
        [_loan(id="L1", amount=Decimal("5000"), approval_number="dd20240091")],
        ApprovalData(approval_number="DD-2024-0091"),
    )
    assert len(matches) == 1
    assert matches[0].match_type == "exact"
    assert "审批单号完全匹配" in matches[0].match_reason
    assert matches[0].match_score == 100


def test_approval_partial_and_suffix_matches():
    from yibaoxiao.modules.extraction.schemas import ApprovalData
    from yibaoxiao.modules.loans.service import match_loans

    partial = match_loans(
        [_loan(id="L1", approval_number="2024-0091")], ApprovalData(approval_number="DD-2024-0091")
    )
    assert partial[0].match_reason == ["审批单号部分匹配"]
    assert partial[0].match_type == "fuzzy"
    assert partial[0].match_score == 60

    suffix = match_loans(
        [_loan(id="L1", approval_number="AA-99-1234567890")],
        ApprovalData(approval_number="BB-00-1234567890"),
    )
    assert suffix[0].match_reason == ["审批单号后缀匹配"]
    assert suffix[0].match_score == 40


def test_score_combines_signals_and_caps_at_100():
    from yibaoxiao.modules.extraction.schemas import ApprovalData
    from yibaoxiao.modules.loans.service import match_loans

    matches = match_loans(
        [_loan(id="L1", amount=Decimal("5000"), approval_number="DD20240091", reason="北京出差")],
        ApprovalData(approval_number="DD-2024-0091", event_summary="北京出差"),
        invoice_amount=Decimal("5000"),
    )
    assert matches[0].match_score == 100
    assert matches[0].match_reason == ["审批单号完全匹配", "金额匹配 (¥5000.00)", "借款事由相关"]
    assert matches[0].match_type == "exact"


def test_amount_only_match_is_typed_amount():
    from yibaoxiao.modules.loans.service import match_loans

    matches = match_loans([_loan(id="L1", amount=Decimal("1000"))], invoice_amount=Decimal("1000"))
    assert matches[0].match_type == "amount"
    assert matches[0].match_score == 50
    assert matches[0].match_reason == ["金额匹配 (¥1000.00)"]


def test_amount_target_falls_back_to_approval_amounts():
    from yibaoxiao.modules.extraction.schemas import ApprovalData
    from yibaoxiao.modules.loans.service import match_loans

    matches = match_loans(
        [_loan(id="L1", amount=Decimal("800"))], ApprovalData(expense_amount=Decimal("800"))
    )
    assert matches[0].match_score == 50


def test_weak_matches_are_dropped():
    from yibaoxiao.modules.loans.service import match_loans

    # 15% apart scores 25 raw, weighted to 12.5 with no reason attached
    assert match_loans([_loan(id="L1", amount=Decimal("1000"))], invoice_amount=Decimal("850")) == []
    assert match_loans([_loan(id="L1", amount=Decimal("1000"))]) == []
    assert match_loans([]) == []


def test_results_sorted_by_descending_score():
    from yibaoxiao.modules.extraction.schemas import ApprovalData
    from yibaoxiao.modules.loans.service import match_loans

    loans = [
        _loan(id="amount", amount=Decimal("1000")),
        _loan(id="exact", amount=Decimal("1"), approval_number="SP-1"),
        _loan(id="near", amount=Decimal("950")),
    ]
    matches = match_loans(loans, ApprovalData(approval_number="sp1"), invoice_amount=Decimal("1000"))
    assert [m.id for m in matches] == ["exact", "amount", "near"]
    assert [m.match_score for m in matches] == [100, 50, 25]
    assert matches[2].match_reason == ["金额相近 (¥950.00)"]


def test_keyword_only_match():
    from yibaoxiao.modules.extraction.schemas import ApprovalData
    from yibaoxiao.modules.loans.service import match_loans

    matches = match_loans(
        [_loan(id="L1", reason="上海客户培训差旅借款")],
        ApprovalData(event_summary="北京出差", event_detail="参加上海培训"),
    )
    assert len(matches) == 1
    assert matches[0].match_type == "keyword"
    assert matches[0].match_reason == ["借款事由相关"]


def test_kept_match_without_reasons_gets_generic_reason():
    from yibaoxiao.modules.loans.service import match_loans

    # 11.6% apart: raw 42, weighted 21, above the floor but below every reason threshold
    matches = match_loans([_loan(id="L1", amount=Decimal("1000"))], invoice_amount=Decimal("884"))
    assert matches[0].match_score == 21
    assert matches[0].match_reason == ["金额或事由相关"]
    assert matches[0].match_type == "keyword"


def test_recommend_loans_skips_paid_and_cancelled():
    from yibaoxiao.modules.loans.service import match_loans, recommend_loans

    loans = [
        _loan(id="paid", amount=Decimal("1000"), status="paid"),
        _loan(id="cancelled", amount=Decimal("1000"), status="cancelled"),
        _loan(id="draft", amount=Decimal("1000"), status="draft"),
        _loan(id="submitted", amount=Decimal("1000"), status="submitted"),
    ]
    recommended = recommend_loans(loans, invoice_amount=Decimal("1000"))
    assert [m.id for m in recommended] == ["draft", "submitted"]
    assert len(match_loans(loans, invoice_amount=Decimal("1000"))) == 4


@pytest.mark.parametrize(
    ("a", "b", "expected"),
    [
        ("1000", "1000", 100),
        ("1000", "950", 50),
        ("1000", "900", 0),
        ("1000", "850", 25),
        ("1000", "700", 0),
        ("0", "100", 0),
    ],
)
def test_amount_score_bands_are_symmetric(a, b, expected):
    from yibaoxiao.modules.loans.service import amount_score

    assert amount_score(Decimal(a), Decimal(b)) == expected
    assert amount_score(Decimal(b), Decimal(a)) == expected


def test_extract_keywords_includes_cjk_ngrams():
    from yibaoxiao.modules.loans.service import extract_keywords

    assert extract_keywords("北京出差") == ["北京出差", "北京", "北京出", "京出", "京出差", "出差"]
    assert extract_keywords("Q1 sales-meeting, 2024") == ["Q1", "sales", "meeting", "2024"]
    assert extract_keywords("") == []


def test_keyword_score_counts_substring_pairs():
    from yibaoxiao.modules.loans.service import keyword_score

    assert keyword_score(["北京", "出差"], ["北京出差"]) == Decimal("100")
    assert keyword_score(["北京"], ["上海"]) == Decimal("0")
    assert keyword_score([], ["上海"]) == Decimal("0")


def test_presentation_helpers():
    from yibaoxiao.modules.loans.service import format_match_reasons, match_type_label

    assert match_type_label("exact") == "精确匹配"
    assert match_type_label("amount") == "金额匹配"
    assert match_type_label("other") == "相关"
    assert format_match_reasons(["审批单号完全匹配", "借款事由相关"]) == "审批单号完全匹配、借款事由相关"
    assert format_match_reasons([]) == "可能相关"
