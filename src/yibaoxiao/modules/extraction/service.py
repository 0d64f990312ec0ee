from __future__ import annotations

import hashlib
import time
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from yibaoxiao.core.config import settings
from yibaoxiao.core.logging import get_logger, log_event, monotonic_ms
from yibaoxiao.modules.extraction.ai import call_recognition_model
from yibaoxiao.modules.extraction.models import RecognitionCache

logger = get_logger(__name__)

CACHE_SCHEMA_VERSION = 1


def recognize(session: Session, *, images: list[str], document_type: str) -> Any:
    """
    Recognize one batch of document images.

    An empty batch is valid and yields an empty result without calling the AI
    service. Identical batches of the same document type are served from the
    recognition cache. Upstream failures propagate as RecognitionError.
    """
    if not images:
        return {}

    request_hash = _request_hash(images=images, document_type=document_type)
    if settings.recognition_cache_enabled:
        cached = _get_cached_result(session, request_hash=request_hash)
        if cached is not None:
            log_event(
                logger,
                "recognition.cache.hit",
                document_type=document_type,
                request_hash=request_hash,
            )
            return cached

    start = time.monotonic()
    result = call_recognition_model(images, document_type)
    log_event(
        logger,
        "recognition.done",
        document_type=document_type,
        images_count=len(images),
        result_kind=type(result).__name__,
        duration_ms=monotonic_ms(start),
    )

    if settings.recognition_cache_enabled:
        _upsert_cached_result(
            session, request_hash=request_hash, document_type=document_type, result=result
        )
        session.commit()
    return result


def recognize_each(session: Session, *, images: list[str], document_type: str) -> list[Any]:
    # Multi-image invoice batches tend to come back with only the first invoice,
    # so each image is recognized on its own.
    return [recognize(session, images=[image], document_type=document_type) for image in images]


def _request_hash(*, images: list[str], document_type: str) -> str:
    h = hashlib.sha256()
    h.update(document_type.encode("utf-8"))
    for image in images:
        h.update(b"\x00")
        h.update(image.encode("utf-8", errors="ignore"))
    return h.hexdigest()


def _get_cached_result(session: Session, *, request_hash: str) -> Any:
    cached = session.scalar(
        select(RecognitionCache).where(RecognitionCache.request_hash == request_hash)
    )
    if not cached:
        return None
    if cached.schema_version != CACHE_SCHEMA_VERSION:
        return None
    if not isinstance(cached.response_json, dict) or "result" not in cached.response_json:
        return None
    return cached.response_json["result"]


def _upsert_cached_result(
    session: Session, *, request_hash: str, document_type: str, result: Any
) -> None:
    cached = session.scalar(
        select(RecognitionCache).where(RecognitionCache.request_hash == request_hash)
    )
    if not cached:
        candidate = RecognitionCache(
            request_hash=request_hash,
            document_type=document_type,
            model=str(settings.ai_model or ""),
            schema_version=CACHE_SCHEMA_VERSION,
            response_json={"result": result},
        )
        try:
            with session.begin_nested():
                session.add(candidate)
                session.flush()
            return
        except IntegrityError:
            cached = session.scalar(
                select(RecognitionCache).where(RecognitionCache.request_hash == request_hash)
            )
            if not cached:
                return
    cached.document_type = document_type
    cached.model = str(settings.ai_model or "")
    cached.schema_version = CACHE_SCHEMA_VERSION
    cached.response_json = {"result": result}
    session.add(cached)
    session.flush()
