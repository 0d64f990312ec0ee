from __future__ import annotations

import time
from collections.abc import Sequence
from decimal import Decimal
from typing import Any

from yibaoxiao.core.context import AnalysisContext
from yibaoxiao.core.logging import get_logger, log_event, monotonic_ms
from yibaoxiao.modules.claims.schemas import (
    BudgetProject,
    GeneralAnalysis,
    ReimbursementClaim,
    TravelAnalysis,
)
from yibaoxiao.modules.extraction.fields import ZERO, as_bag, pick_text
from yibaoxiao.modules.extraction.schemas import ApprovalData
from yibaoxiao.modules.invoices.schemas import ExpenseLine, LedgerEntry
from yibaoxiao.modules.invoices.service import (
    build_expense_lines,
    build_title,
    collect_invoice_results,
    match_pending_expenses,
    parse_invoices,
)
from yibaoxiao.modules.loans.schemas import LoanRecord
from yibaoxiao.modules.loans.service import recommend_loans
from yibaoxiao.modules.travel.schemas import TripLeg
from yibaoxiao.modules.travel.service import (
    allocate_city_traffic,
    build_trip_legs,
    extract_hotels,
    extract_tickets,
    pair_tickets,
    sum_subtotals,
)
from yibaoxiao.modules.travel.taxi import check_city_traffic, process_taxi_details, taxi_total

logger = get_logger(__name__)

DEFAULT_TRAVEL_TITLE = "差旅费报销"


def select_budget_project(
    projects: Sequence[BudgetProject],
    approval: ApprovalData,
    current_id: str | None = None,
) -> str | None:
    wanted_name = approval.budget_project or ""
    wanted_code = approval.budget_code or ""
    if not wanted_name and not wanted_code:
        return current_id
    for project in projects:
        if wanted_name and wanted_name in project.name:
            return project.id
        if wanted_code and project.code == wanted_code:
            return project.id
    return current_id


def assemble_claim(
    title: str,
    items: list[ExpenseLine] | list[TripLeg],
    prepaid_amount: Decimal = ZERO,
) -> ReimbursementClaim:
    return ReimbursementClaim(title=title, items=items, prepaid_amount=prepaid_amount)


def analyze_general(
    invoice_results: Sequence[Any],
    approval_result: Any,
    *,
    loans: Sequence[LoanRecord] = (),
    pending_expenses: Sequence[LedgerEntry] = (),
    budget_projects: Sequence[BudgetProject] = (),
    current_budget_project_id: str | None = None,
    merge: bool = True,
    prepaid_amount: Decimal = ZERO,
    context: AnalysisContext,
) -> GeneralAnalysis:
    """
    Reconcile recognized invoices (one result per image) and an optional
    approval form into a general expense claim.

    The loan suggestions use every parsed invoice, regardless of the user's
    later selection.
    """
    start = time.monotonic()
    approval = ApprovalData.from_bag(approval_result)
    invoices = parse_invoices(collect_invoice_results(invoice_results), today=context.today)

    title = build_title(invoices, approval)
    expense_lines = build_expense_lines(invoices, approval, merge=merge)
    invoice_total = sum((line.amount for line in invoices), ZERO)
    invoice_content = " ".join(line.project_name for line in invoices)

    matched_loans = recommend_loans(loans, approval, invoice_total, invoice_content)
    matched_expense_ids = match_pending_expenses(
        pending_expenses, title=title, lines=invoices, approval=approval
    )
    budget_project_id = select_budget_project(
        budget_projects, approval, current_budget_project_id
    )

    claim = assemble_claim(title, expense_lines, prepaid_amount)
    log_event(
        logger,
        "claims.general.analyzed",
        invoices_count=len(invoices),
        expense_lines_count=len(expense_lines),
        matched_loans_count=len(matched_loans),
        total_amount=str(claim.total_amount),
        duration_ms=monotonic_ms(start),
    )
    return GeneralAnalysis(
        approval=approval,
        invoices=invoices,
        title=title,
        expense_lines=expense_lines,
        matched_loans=matched_loans,
        matched_expense_ids=matched_expense_ids,
        budget_project_id=budget_project_id,
        approval_number=approval.approval_number,
        claim=claim,
    )


def analyze_travel(
    ticket_result: Any,
    hotel_result: Any,
    taxi_result: Any,
    approval_result: Any,
    *,
    loans: Sequence[LoanRecord] = (),
    budget_projects: Sequence[BudgetProject] = (),
    current_budget_project_id: str | None = None,
    prepaid_amount: Decimal = ZERO,
    context: AnalysisContext,
) -> TravelAnalysis:
    start = time.monotonic()
    approval = ApprovalData.from_bag(approval_result)

    pairs = pair_tickets(extract_tickets(ticket_result))
    legs = build_trip_legs(pairs, extract_hotels(hotel_result), today=context.today)
    taxi_details = process_taxi_details(taxi_result, approval=approval, context=context)
    allocate_city_traffic(legs, taxi_total(taxi_details))
    city_traffic = check_city_traffic(legs, taxi_details)

    trip_content = " ".join(
        t for t in (" ".join(leg.route for leg in legs), approval.event_summary) if t
    )
    matched_loans = recommend_loans(loans, approval, sum_subtotals(legs), trip_content)
    trip_reason = approval.event_summary or pick_text(as_bag(ticket_result), ("tripReason",))
    budget_project_id = select_budget_project(
        budget_projects, approval, current_budget_project_id
    )

    claim = assemble_claim(trip_reason or DEFAULT_TRAVEL_TITLE, legs, prepaid_amount)
    log_event(
        logger,
        "claims.travel.analyzed",
        legs_count=len(legs),
        taxi_count=len(taxi_details),
        city_traffic_consistent=city_traffic.is_consistent,
        matched_loans_count=len(matched_loans),
        total_amount=str(claim.total_amount),
        duration_ms=monotonic_ms(start),
    )
    return TravelAnalysis(
        approval=approval,
        trip_legs=legs,
        taxi_details=taxi_details,
        city_traffic=city_traffic,
        matched_loans=matched_loans,
        trip_reason=trip_reason,
        budget_project_id=budget_project_id,
        approval_number=approval.approval_number,
        claim=claim,
    )
