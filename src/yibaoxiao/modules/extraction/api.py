from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from yibaoxiao.core.config import settings
from yibaoxiao.core.db import db_session
from yibaoxiao.core.logging import get_logger, log_event
from yibaoxiao.modules.extraction.ai import RecognitionError, RecognitionNotConfigured
from yibaoxiao.modules.extraction.schemas import RecognizeIn, RecognizeOut
from yibaoxiao.modules.extraction.service import recognize

logger = get_logger(__name__)

router = APIRouter(tags=["recognition"])


def recognition_http_error(exc: RecognitionError) -> HTTPException:
    if isinstance(exc, RecognitionNotConfigured):
        return HTTPException(
            status_code=503,
            detail="AI 识别服务未配置，请在设置中填写 API Key 后重试",
        )
    log_event(logger, "recognition.failed", error=str(exc), retryable=exc.retryable)
    hint = "请稍后重试" if exc.retryable else "请检查上传的图片是否清晰完整"
    return HTTPException(status_code=502, detail=f"AI 识别失败：{exc}，{hint}")


def check_image_count(images: list[str]) -> None:
    if len(images) > settings.ai_max_images:
        raise HTTPException(
            status_code=422,
            detail=f"一次最多识别 {settings.ai_max_images} 张图片",
        )


@router.post("/ai/recognize", response_model=RecognizeOut)
def recognize_endpoint(
    payload: RecognizeIn,
    session: Session = Depends(db_session),
) -> RecognizeOut:
    check_image_count(payload.images)
    try:
        result = recognize(session, images=payload.images, document_type=payload.type)
    except RecognitionError as e:
        raise recognition_http_error(e) from e
    return RecognizeOut(result=result)
