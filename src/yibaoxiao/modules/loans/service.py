"""
Ranking of outstanding loans against a reimbursement.

Each loan is scored on independent signals (the approval number, the amount
and keyword overlap with the loan reason) and the weighted scores are summed.
The scorer is pure; status filtering lives in ``recommend_loans``.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from decimal import ROUND_HALF_UP, Decimal

from yibaoxiao.core.config import settings
from yibaoxiao.core.logging import get_logger, log_event
from yibaoxiao.modules.extraction.fields import ZERO, money
from yibaoxiao.modules.extraction.schemas import ApprovalData
from yibaoxiao.modules.loans.schemas import LoanRecord, MatchedLoan, MatchType

logger = get_logger(__name__)

APPROVAL_EXACT_SCORE = 100
APPROVAL_PARTIAL_SCORE = 60
APPROVAL_SUFFIX_SCORE = 40
APPROVAL_SUFFIX_LEN = 10
AMOUNT_WEIGHT = Decimal("0.5")
KEYWORD_WEIGHT = Decimal("0.3")
NEAR_AMOUNT_RATIO = Decimal("0.2")
CLOSED_STATUSES = frozenset({"paid", "cancelled"})

_APPROVAL_NOISE_RE = re.compile(r"[\s\-_]")
_NON_WORD_RE = re.compile(r"[^一-龥a-zA-Z0-9]")
_CJK_RUN_RE = re.compile(r"[一-龥]{2,}")

_MATCH_TYPE_LABELS: dict[str, str] = {
    "exact": "精确匹配",
    "fuzzy": "模糊匹配",
    "amount": "金额匹配",
    "keyword": "关键词匹配",
}


def round_half_up(value: Decimal | float) -> int:
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def normalize_approval_number(value: str | None) -> str:
    if not value:
        return ""
    return _APPROVAL_NOISE_RE.sub("", value.lower())


def extract_keywords(text: str | None) -> list[str]:
    if not text:
        return []
    cleaned = _NON_WORD_RE.sub(" ", text)
    keywords = [w for w in cleaned.split() if len(w) >= 2]

    for run in _CJK_RUN_RE.findall(text):
        keywords.append(run)
        for i in range(len(run) - 1):
            keywords.append(run[i : i + 2])
            if i + 3 <= len(run):
                keywords.append(run[i : i + 3])

    return list(dict.fromkeys(keywords))


def amount_score(a: Decimal, b: Decimal, tolerance: Decimal = Decimal("0.1")) -> int:
    if a == ZERO or b == ZERO:
        return 0
    if a == b:
        return 100
    ratio = abs(a - b) / max(a, b)
    if ratio <= tolerance:
        return round_half_up(100 * (1 - ratio / tolerance))
    if ratio <= NEAR_AMOUNT_RATIO:
        return round_half_up(50 * (1 - (ratio - tolerance) / Decimal("0.1")))
    return 0


def keyword_score(first: Sequence[str], second: Sequence[str]) -> Decimal:
    set1 = {k.lower() for k in first}
    set2 = {k.lower() for k in second}
    if not set1 or not set2:
        return ZERO

    hits = sum(1 for k1 in set1 for k2 in set2 if k1 == k2 or k1 in k2 or k2 in k1)
    score = Decimal(hits) / Decimal(min(len(set1), len(set2))) * 100
    return min(Decimal(100), score)


def _approval_signal(loan_number: str, claim_number: str) -> tuple[int, str, MatchType] | None:
    a = normalize_approval_number(loan_number)
    b = normalize_approval_number(claim_number)
    if not a or not b:
        return None
    if a == b:
        return APPROVAL_EXACT_SCORE, "审批单号完全匹配", "exact"
    if a in b or b in a:
        return APPROVAL_PARTIAL_SCORE, "审批单号部分匹配", "fuzzy"
    if a[-APPROVAL_SUFFIX_LEN:] == b[-APPROVAL_SUFFIX_LEN:]:
        return APPROVAL_SUFFIX_SCORE, "审批单号后缀匹配", "fuzzy"
    return None


def match_loans(
    loans: Sequence[LoanRecord],
    approval: ApprovalData | None = None,
    invoice_amount: Decimal = ZERO,
    invoice_content: str = "",
) -> list[MatchedLoan]:
    approval = approval or ApprovalData()
    target_amount = next(
        (a for a in (invoice_amount, approval.loan_amount, approval.expense_amount) if a),
        ZERO,
    )
    claim_keywords = extract_keywords(
        " ".join(
            t for t in (approval.event_summary, approval.event_detail, invoice_content) if t
        )
    )

    scored: list[tuple[Decimal, LoanRecord, list[str], MatchType]] = []
    for loan in loans:
        score = ZERO
        reasons: list[str] = []
        match_type: MatchType = "keyword"

        signal = _approval_signal(loan.approval_number or "", approval.approval_number or "")
        if signal is not None:
            points, reason, match_type = signal
            score += points
            reasons.append(reason)

        amount_points = (
            amount_score(loan.amount, target_amount)
            if target_amount > ZERO and loan.amount > ZERO
            else 0
        )
        if amount_points:
            score += AMOUNT_WEIGHT * amount_points
            if amount_points >= 90:
                reasons.append(f"金额匹配 (¥{money(loan.amount)})")
                if match_type == "keyword":
                    match_type = "amount"
            elif amount_points >= 50:
                reasons.append(f"金额相近 (¥{money(loan.amount)})")

        keyword_points = keyword_score(claim_keywords, extract_keywords(loan.reason))
        if keyword_points:
            score += KEYWORD_WEIGHT * keyword_points
            if keyword_points >= 50:
                reasons.append("借款事由相关")

        if score <= ZERO:
            continue
        if score > settings.loan_match_min_score or reasons:
            scored.append((score, loan, reasons or ["金额或事由相关"], match_type))

    scored.sort(key=lambda item: item[0], reverse=True)
    matches = [
        MatchedLoan(
            **loan.model_dump(),
            match_score=min(100, round_half_up(score)),
            match_reason=reasons,
            match_type=match_type,
        )
        for score, loan, reasons, match_type in scored
    ]
    log_event(
        logger,
        "loans.match.done",
        loans_count=len(loans),
        matched_count=len(matches),
        top_score=matches[0].match_score if matches else None,
    )
    return matches


def recommend_loans(
    loans: Sequence[LoanRecord],
    approval: ApprovalData | None = None,
    invoice_amount: Decimal = ZERO,
    invoice_content: str = "",
) -> list[MatchedLoan]:
    open_loans = [loan for loan in loans if loan.status not in CLOSED_STATUSES]
    return match_loans(open_loans, approval, invoice_amount, invoice_content)


def match_type_label(match_type: str) -> str:
    return _MATCH_TYPE_LABELS.get(match_type, "相关")


def format_match_reasons(reasons: Sequence[str]) -> str:
    return "、".join(reasons) if reasons else "可能相关"
