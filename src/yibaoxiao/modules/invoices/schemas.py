from __future__ import annotations

from decimal import Decimal
from typing import Literal

from pydantic import Field

from yibaoxiao.core.schemas import CamelModel

ExpenseStatus = Literal["pending", "processing", "done"]


class InvoiceLine(CamelModel):
    id: str
    project_name: str
    amount: Decimal = Field(ge=0)
    invoice_date: str
    invoice_number: str | None = None
    selected: bool = True


class ExpenseLine(CamelModel):
    id: str
    date: str
    description: str
    amount: Decimal
    category: str
    status: ExpenseStatus = "pending"


class LedgerEntry(CamelModel):
    id: str
    description: str = ""
    category: str = ""
    amount: Decimal = Decimal("0")
    date: str | None = None
    status: ExpenseStatus = "pending"
