from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any

from yibaoxiao.core.logging import get_logger, log_event
from yibaoxiao.modules.extraction.fields import (
    AMOUNT_KEYS,
    INVOICE_TOTAL_KEYS,
    ZERO,
    FieldBag,
    coerce_amount,
    has_any,
    pick_amount,
    pick_date,
    pick_text,
)
from yibaoxiao.modules.extraction.schemas import ApprovalData
from yibaoxiao.modules.invoices.schemas import ExpenseLine, InvoiceLine, LedgerEntry

logger = get_logger(__name__)

TITLE_NAME_LIMIT = 3
DEFAULT_DESCRIPTION = "费用报销"
DEFAULT_CATEGORY = "其他"

_SINGLE_INVOICE_MARKERS = ("projectName", "totalAmount", "invoiceNumber", "invoiceDate")


def _nested_list(key: str) -> Callable[[Any], bool]:
    def _check(raw: Any) -> bool:
        return isinstance(raw, dict) and isinstance(raw.get(key), list)

    return _check


def _has_items(raw: Any) -> bool:
    return isinstance(raw, dict) and isinstance(raw.get("items"), list) and bool(raw["items"])


# (name, predicate, extractor) tried in order; the first predicate that holds wins.
_INVOICE_SHAPES: tuple[tuple[str, Callable[[Any], bool], Callable[[Any], list]], ...] = (
    ("array", lambda raw: isinstance(raw, list), lambda raw: list(raw)),
    ("invoices", _nested_list("invoices"), lambda raw: list(raw["invoices"])),
    ("details", _nested_list("details"), lambda raw: list(raw["details"])),
    ("itemized", _has_items, lambda raw: [raw]),
    ("flat", lambda raw: isinstance(raw, dict) and bool(raw), lambda raw: [raw]),
)


def parse_invoices(raw: Any, *, today: date | None = None) -> list[InvoiceLine]:
    shape = "empty"
    bags: list = []
    for name, predicate, extract in _INVOICE_SHAPES:
        if predicate(raw):
            shape = name
            bags = extract(raw)
            break

    lines: list[InvoiceLine] = []
    for idx, bag in enumerate(bags):
        line = _parse_invoice(bag, idx, today=today)
        if line is not None:
            lines.append(line)

    # Zero-amount lines are usually recognition noise, unless nothing else came back.
    valid = [line for line in lines if line.amount > ZERO]
    result = valid or lines
    log_event(
        logger,
        "invoices.parse.done",
        shape=shape,
        parsed_count=len(lines),
        valid_count=len(valid),
    )
    return result


def _parse_invoice(bag: Any, idx: int, *, today: date | None) -> InvoiceLine | None:
    if not isinstance(bag, dict) or not bag:
        return None

    raw_items = bag.get("items")
    items = [i for i in raw_items if isinstance(i, dict)] if isinstance(raw_items, list) else []

    if items:
        amount = coerce_amount(bag.get("totalAmount"))
        if amount == ZERO:
            amount = sum((pick_amount(i, AMOUNT_KEYS) for i in items), ZERO)
        if amount == ZERO:
            amount = pick_amount(bag, INVOICE_TOTAL_KEYS)
    else:
        amount = pick_amount(bag, AMOUNT_KEYS)

    first_item_name = pick_text(items[0], ("name",)) if items else ""
    project_name = pick_text(bag, ("projectName", "title")) or first_item_name or f"发票{idx + 1}"

    return InvoiceLine(
        id=f"invoice-{idx + 1}",
        project_name=project_name,
        amount=max(amount, ZERO),
        invoice_date=pick_date(bag, ("invoiceDate", "date"), today=today),
        invoice_number=pick_text(bag, ("invoiceNumber", "number")) or None,
        selected=True,
    )


def collect_invoice_results(results: Sequence[Any]) -> list[FieldBag]:
    """Flatten per-image recognition results into one list of invoice bags."""
    bags: list[FieldBag] = []
    for result in results:
        if isinstance(result, list):
            bags.extend(r for r in result if isinstance(r, dict))
        elif _nested_list("invoices")(result):
            bags.extend(r for r in result["invoices"] if isinstance(r, dict))
        elif _nested_list("details")(result):
            bags.extend(r for r in result["details"] if isinstance(r, dict))
        elif isinstance(result, dict) and has_any(result, _SINGLE_INVOICE_MARKERS):
            bags.append(result)
    return bags


def build_title(lines: Sequence[InvoiceLine], approval: ApprovalData | None = None) -> str:
    if not lines:
        return ""
    if len(lines) == 1:
        title = lines[0].project_name
    else:
        names = list(dict.fromkeys(line.project_name for line in lines))
        title = "、".join(names[:TITLE_NAME_LIMIT])
        if len(names) > TITLE_NAME_LIMIT:
            title += "等"
    if approval is not None:
        title += approval.event_suffix()
    return title


def build_expense_lines(
    lines: Sequence[InvoiceLine],
    approval: ApprovalData | None = None,
    *,
    merge: bool,
) -> list[ExpenseLine]:
    selected = [line for line in lines if line.selected]
    if not selected:
        return []

    approval = approval or ApprovalData()
    if merge or len(selected) == 1:
        first = selected[0]
        return [
            ExpenseLine(
                id="extracted-merged",
                date=first.invoice_date,
                description=build_title(selected, approval)
                or first.project_name
                or DEFAULT_DESCRIPTION,
                amount=sum((line.amount for line in selected), ZERO),
                category=first.project_name or DEFAULT_CATEGORY,
            )
        ]

    suffix = approval.event_suffix()
    return [
        ExpenseLine(
            id=f"extracted-{line.id}",
            date=line.invoice_date,
            description=f"{line.project_name}{suffix}",
            amount=line.amount,
            category=line.project_name or DEFAULT_CATEGORY,
        )
        for line in selected
    ]


@dataclass
class InvoiceSelection:
    """The user's include/exclude choices over the recognized invoices."""

    lines: list[InvoiceLine] = field(default_factory=list)
    merge: bool = True

    @property
    def selected(self) -> list[InvoiceLine]:
        return [line for line in self.lines if line.selected]

    @property
    def total_amount(self) -> Decimal:
        return sum((line.amount for line in self.selected), ZERO)

    def toggle(self, invoice_id: str) -> bool | None:
        for line in self.lines:
            if line.id == invoice_id:
                line.selected = not line.selected
                return line.selected
        return None

    def set_merge(self, merge: bool) -> None:
        self.merge = merge

    def title(self, approval: ApprovalData | None = None) -> str:
        return build_title(self.selected, approval)

    def expense_lines(self, approval: ApprovalData | None = None) -> list[ExpenseLine]:
        return build_expense_lines(self.lines, approval, merge=self.merge)


def match_pending_expenses(
    entries: Sequence[LedgerEntry],
    *,
    title: str,
    lines: Sequence[InvoiceLine],
    approval: ApprovalData | None = None,
) -> list[str]:
    terms = [title, *(line.project_name for line in lines)]
    if approval is not None and approval.event_summary:
        terms.append(approval.event_summary)
    search_terms = [t.strip().lower() for t in terms if t and t.strip()]
    if not search_terms:
        return []

    matched: list[str] = []
    for entry in entries:
        if entry.status != "pending":
            continue
        fields = [f.strip().lower() for f in (entry.description, entry.category) if f and f.strip()]
        if any(f in term or term in f for f in fields for term in search_terms):
            matched.append(entry.id)

    if matched:
        log_event(
            logger,
            "invoices.ledger.matched",
            matched_count=len(matched),
            terms_count=len(search_terms),
        )
    return matched
