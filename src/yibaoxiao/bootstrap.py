from __future__ import annotations

from yibaoxiao.core.config import settings
from yibaoxiao.core.db import Base, engine
from yibaoxiao.core.logging import configure_logging, get_logger, log_event
from yibaoxiao.modules.extraction.ai import recognition_available

import yibaoxiao.models  # noqa: F401

logger = get_logger(__name__)


def bootstrap() -> None:
    configure_logging()
    if settings.environment in {"dev", "test"} and str(settings.database_url).startswith("sqlite"):
        Base.metadata.create_all(engine)

    log_event(
        logger,
        "app.bootstrap",
        environment=settings.environment,
        recognition_configured=recognition_available(),
        recognition_cache_enabled=settings.recognition_cache_enabled,
    )
