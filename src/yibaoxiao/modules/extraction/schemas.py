from __future__ import annotations

from decimal import Decimal
from typing import Any, Literal

from pydantic import BaseModel, Field

from yibaoxiao.core.schemas import CamelModel
from yibaoxiao.modules.extraction.fields import ZERO, as_bag, pick_amount, pick_text

DocumentType = Literal["invoice", "approval", "ticket", "hotel", "taxi"]


class RecognizeIn(BaseModel):
    type: DocumentType
    images: list[str] = Field(default_factory=list)


class RecognizeOut(BaseModel):
    result: Any


class ApprovalData(CamelModel):
    approval_number: str | None = None
    approval_title: str | None = None
    applicant: str | None = None
    event_summary: str | None = None
    event_detail: str | None = None
    loan_amount: Decimal = ZERO
    expense_amount: Decimal = ZERO
    budget_project: str | None = None
    budget_code: str | None = None

    @classmethod
    def from_bag(cls, raw: Any) -> ApprovalData:
        bag = as_bag(raw)
        return cls(
            approval_number=pick_text(bag, ("approvalNumber", "approvalNo", "processNumber"))
            or None,
            approval_title=pick_text(bag, ("approvalTitle", "title")) or None,
            applicant=pick_text(bag, ("applicant", "applicantName")) or None,
            event_summary=pick_text(bag, ("eventSummary",)) or None,
            event_detail=pick_text(bag, ("eventDetail",)) or None,
            loan_amount=pick_amount(bag, ("loanAmount",)),
            expense_amount=pick_amount(bag, ("expenseAmount",)),
            budget_project=pick_text(bag, ("budgetProject",)) or None,
            budget_code=pick_text(bag, ("budgetCode",)) or None,
        )

    def event_suffix(self) -> str:
        return f"（{self.event_summary}）" if self.event_summary else ""
