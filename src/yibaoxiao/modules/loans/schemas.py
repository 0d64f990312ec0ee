from __future__ import annotations

from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field

from yibaoxiao.core.schemas import CamelModel
from yibaoxiao.modules.extraction.fields import ZERO
from yibaoxiao.modules.extraction.schemas import ApprovalData

LoanStatus = Literal["draft", "submitted", "paid", "cancelled"]
MatchType = Literal["exact", "fuzzy", "amount", "keyword"]


class LoanRecord(CamelModel):
    id: str
    amount: Decimal = ZERO
    reason: str | None = None
    approval_number: str | None = None
    date: str | None = None
    status: LoanStatus = "submitted"


class MatchedLoan(LoanRecord):
    match_score: int = Field(ge=0, le=100)
    match_reason: list[str] = Field(default_factory=list)
    match_type: MatchType = "keyword"


class LoanMatchIn(CamelModel):
    loans: list[LoanRecord] = Field(default_factory=list)
    approval: ApprovalData = Field(default_factory=ApprovalData)
    invoice_amount: Decimal = ZERO
    invoice_content: str = ""


class LoanMatchOut(BaseModel):
    matches: list[MatchedLoan]
