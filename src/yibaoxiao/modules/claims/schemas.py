from __future__ import annotations

from decimal import Decimal
from typing import Any

from pydantic import Field, computed_field

from yibaoxiao.core.schemas import CamelModel
from yibaoxiao.modules.extraction.fields import ZERO
from yibaoxiao.modules.extraction.schemas import ApprovalData
from yibaoxiao.modules.invoices.schemas import ExpenseLine, InvoiceLine, LedgerEntry
from yibaoxiao.modules.loans.schemas import LoanRecord, MatchedLoan
from yibaoxiao.modules.travel.schemas import CityTrafficCheck, TaxiDetail, TripLeg


class BudgetProject(CamelModel):
    id: str
    name: str = ""
    code: str | None = None


class ReimbursementClaim(CamelModel):
    title: str = ""
    items: list[ExpenseLine] | list[TripLeg] = Field(default_factory=list)
    prepaid_amount: Decimal = ZERO

    @computed_field(alias="totalAmount")
    @property
    def total_amount(self) -> Decimal:
        total = ZERO
        for item in self.items:
            total += item.sub_total if isinstance(item, TripLeg) else item.amount
        return total

    @computed_field(alias="payableAmount")
    @property
    def payable_amount(self) -> Decimal:
        # Negative when the prepaid loan exceeds the claim; the difference is owed back.
        return self.total_amount - self.prepaid_amount


class ClaimOptions(CamelModel):
    loans: list[LoanRecord] = Field(default_factory=list)
    budget_projects: list[BudgetProject] = Field(default_factory=list)
    budget_project_id: str | None = None
    prepaid_amount: Decimal = ZERO
    user_name: str | None = None


class GeneralAnalyzeIn(ClaimOptions):
    invoice_images: list[str] = Field(default_factory=list)
    approval_images: list[str] = Field(default_factory=list)
    pending_expenses: list[LedgerEntry] = Field(default_factory=list)
    merge: bool = True


class GeneralReconcileIn(ClaimOptions):
    invoice_results: list[Any] = Field(default_factory=list)
    approval_result: Any = None
    pending_expenses: list[LedgerEntry] = Field(default_factory=list)
    merge: bool = True


class TravelAnalyzeIn(ClaimOptions):
    ticket_images: list[str] = Field(default_factory=list)
    hotel_images: list[str] = Field(default_factory=list)
    taxi_images: list[str] = Field(default_factory=list)
    approval_images: list[str] = Field(default_factory=list)


class TravelReconcileIn(ClaimOptions):
    ticket_result: Any = None
    hotel_result: Any = None
    taxi_result: Any = None
    approval_result: Any = None


class GeneralAnalysis(CamelModel):
    approval: ApprovalData
    invoices: list[InvoiceLine]
    title: str
    expense_lines: list[ExpenseLine]
    matched_loans: list[MatchedLoan]
    matched_expense_ids: list[str]
    budget_project_id: str | None = None
    approval_number: str | None = None
    claim: ReimbursementClaim


class TravelAnalysis(CamelModel):
    approval: ApprovalData
    trip_legs: list[TripLeg]
    taxi_details: list[TaxiDetail]
    city_traffic: CityTrafficCheck
    matched_loans: list[MatchedLoan]
    trip_reason: str
    budget_project_id: str | None = None
    approval_number: str | None = None
    claim: ReimbursementClaim
