from __future__ import annotations

from fastapi import APIRouter

from yibaoxiao.modules.claims.api import router as claims_router
from yibaoxiao.modules.extraction.ai import recognition_available
from yibaoxiao.modules.extraction.api import router as recognition_router
from yibaoxiao.modules.loans.api import router as loans_router

router = APIRouter()

router.include_router(recognition_router, prefix="/api")
router.include_router(claims_router, prefix="/api")
router.include_router(loans_router, prefix="/api")


@router.get("/healthz")
def healthz() -> dict[str, str]:
    return {"status": "ok", "recognition": "ready" if recognition_available() else "unconfigured"}
