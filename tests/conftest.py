from __future__ import annotations

import os

import pytest

# Set env before any yibaoxiao imports (settings/engine are created at import time).
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite:///./.yibaoxiao_test.db")
os.environ.setdefault("AI_API_KEY", "test-key")
os.environ.setdefault("DEFAULT_USER_NAME", "张三")


@pytest.fixture(autouse=True)
def _reset_db() -> None:
    import yibaoxiao.models  # noqa: F401
    from yibaoxiao.core.db import Base, engine

    # Reset DB schema
    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)

    yield


@pytest.fixture
def context():
    from datetime import date

    from yibaoxiao.core.context import AnalysisContext

    return AnalysisContext(user_name="张三", today=date(2024, 3, 1))
