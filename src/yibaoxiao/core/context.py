from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date

from yibaoxiao.core.config import settings


@dataclass(frozen=True)
class AnalysisContext:
    """Who is filing the claim and what "today" is for date fallbacks."""

    user_name: str = field(default_factory=lambda: settings.default_user_name)
    today: date = field(default_factory=date.today)
