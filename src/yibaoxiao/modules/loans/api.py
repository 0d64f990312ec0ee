from __future__ import annotations

from fastapi import APIRouter

from yibaoxiao.modules.loans.schemas import LoanMatchIn, LoanMatchOut
from yibaoxiao.modules.loans.service import recommend_loans

router = APIRouter(tags=["loans"])


@router.post("/loans/match", response_model=LoanMatchOut)
def match_loans_endpoint(payload: LoanMatchIn) -> LoanMatchOut:
    matches = recommend_loans(
        payload.loans,
        payload.approval,
        invoice_amount=payload.invoice_amount,
        invoice_content=payload.invoice_content,
    )
    return LoanMatchOut(matches=matches)
