from __future__ import annotations

from decimal import Decimal


def test_payable_is_total_minus_prepaid_and_may_go_negative():
    from yibaoxiao.modules.claims.service import assemble_claim
    from yibaoxiao.modules.invoices.schemas import ExpenseLine

    items = [
        ExpenseLine(id="a", date="2024-01-01", description="餐饮", amount=Decimal("120.50"), category="餐饮"),
        ExpenseLine(id="b", date="2024-01-02", description="交通", amount=Decimal("79.50"), category="交通"),
    ]
    claim = assemble_claim("费用报销", items, Decimal("50"))
    assert claim.total_amount == Decimal("200.00")
    assert claim.payable_amount == Decimal("150.00")

    claim.prepaid_amount = Decimal("500")
    assert claim.payable_amount == Decimal("-300.00")

    dumped = claim.model_dump(by_alias=True)
    assert dumped["totalAmount"] == Decimal("200.00")
    assert dumped["payableAmount"] == Decimal("-300.00")


def test_travel_claim_totals_leg_subtotals():
    from yibaoxiao.modules.claims.service import assemble_claim
    from yibaoxiao.modules.travel.schemas import TripLeg

    legs = [
        TripLeg(transport_fee=Decimal("980"), hotel_fee=Decimal("600")),
        TripLeg(transport_fee=Decimal("120"), meal_fee=Decimal("100")),
    ]
    claim = assemble_claim("培训", legs)
    assert claim.total_amount == Decimal("1800")
    assert claim.payable_amount == Decimal("1800")


def test_select_budget_project_by_name_or_code():
    from yibaoxiao.modules.claims.schemas import BudgetProject
    from yibaoxiao.modules.claims.service import select_budget_project
    from yibaoxiao.modules.extraction.schemas import ApprovalData

    projects = [
        BudgetProject(id="p1", name="市场推广费用", code="MK-01"),
        BudgetProject(id="p2", name="研发差旅费用", code="RD-02"),
    ]
    assert select_budget_project(projects, ApprovalData(budget_project="差旅"), "p1") == "p2"
    assert select_budget_project(projects, ApprovalData(budget_code="MK-01"), None) == "p1"
    assert select_budget_project(projects, ApprovalData(budget_project="行政"), "p1") == "p1"
    assert select_budget_project(projects, ApprovalData(), "p2") == "p2"


def test_analyze_general_end_to_end(context):
    from yibaoxiao.modules.claims.service import analyze_general
    from yibaoxiao.modules.invoices.schemas import LedgerEntry
    from yibaoxiao.modules.loans.schemas import LoanRecord

    analysis = analyze_general(
        [
            {"projectName": "餐饮", "totalAmount": "1,200.50", "invoiceDate": "2024-01-08"},
            [{"projectName": "交通", "amount": 300, "invoiceDate": "2024-01-09"}],
        ],
        {"approvalNumber": "DD-2024-0091", "eventSummary": "客户拜访"},
        loans=[
            LoanRecord(id="L1", amount=Decimal("1500.50"), approval_number="dd20240091"),
            LoanRecord(id="L2", amount=Decimal("1500.50"), status="paid"),
        ],
        pending_expenses=[LedgerEntry(id="e1", description="客户拜访午餐")],
        merge=True,
        prepaid_amount=Decimal("1500.50"),
        context=context,
    )

    assert analysis.title == "餐饮、交通（客户拜访）"
    assert len(analysis.invoices) == 2
    assert len(analysis.expense_lines) == 1
    assert analysis.expense_lines[0].amount == Decimal("1500.50")
    assert [m.id for m in analysis.matched_loans] == ["L1"]
    assert analysis.matched_loans[0].match_type == "exact"
    assert analysis.matched_expense_ids == ["e1"]
    assert analysis.approval_number == "DD-2024-0091"
    assert analysis.claim.total_amount == Decimal("1500.50")
    assert analysis.claim.payable_amount == Decimal("0")


def test_analyze_general_with_nothing_recognized(context):
    from yibaoxiao.modules.claims.service import analyze_general

    analysis = analyze_general([], {}, context=context)
    assert analysis.invoices == []
    assert analysis.title == ""
    assert analysis.expense_lines == []
    assert analysis.matched_loans == []
    assert analysis.claim.total_amount == Decimal("0")


def test_analyze_travel_end_to_end(context):
    from yibaoxiao.modules.claims.service import analyze_travel
    from yibaoxiao.modules.loans.schemas import LoanRecord

    analysis = analyze_travel(
        {
            "tickets": [
                {"departure": "北京", "destination": "上海", "date": "2024-01-10", "amount": 500},
                {"departure": "上海", "destination": "北京", "date": "2024-01-15", "amount": 480},
            ],
            "tripReason": "供应商审计",
        },
        {"hotels": [{"city": "上海", "amount": 1200, "days": 5}]},
        {"details": [{"amount": 20}, {"amount": 35}]},
        {},
        loans=[LoanRecord(id="L1", amount=Decimal("2235"), reason="上海差旅")],
        context=context,
    )

    assert analysis.trip_reason == "供应商审计"
    assert len(analysis.trip_legs) == 1
    leg = analysis.trip_legs[0]
    assert leg.transport_fee == Decimal("980")
    assert leg.hotel_fee == Decimal("1200")
    assert leg.city_traffic_fee == Decimal("55")
    assert leg.sub_total == Decimal("2235")
    assert [d.employee_name for d in analysis.taxi_details] == ["张三", "张三"]
    assert analysis.city_traffic.is_consistent is True
    assert analysis.matched_loans[0].id == "L1"
    assert analysis.claim.title == "供应商审计"
    assert analysis.claim.total_amount == Decimal("2235")
