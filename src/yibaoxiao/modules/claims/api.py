from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from yibaoxiao.core.context import AnalysisContext
from yibaoxiao.core.db import db_session
from yibaoxiao.core.logging import reset_analysis_context, set_analysis_context
from yibaoxiao.modules.claims.schemas import (
    ClaimOptions,
    GeneralAnalysis,
    GeneralAnalyzeIn,
    GeneralReconcileIn,
    TravelAnalysis,
    TravelAnalyzeIn,
    TravelReconcileIn,
)
from yibaoxiao.modules.claims.service import analyze_general, analyze_travel
from yibaoxiao.modules.extraction.ai import RecognitionError
from yibaoxiao.modules.extraction.api import check_image_count, recognition_http_error
from yibaoxiao.modules.extraction.service import recognize, recognize_each

router = APIRouter(tags=["claims"])


def _context(payload: ClaimOptions) -> AnalysisContext:
    if payload.user_name:
        return AnalysisContext(user_name=payload.user_name)
    return AnalysisContext()


def _general(payload: GeneralReconcileIn) -> GeneralAnalysis:
    token = set_analysis_context(str(uuid.uuid4()))
    try:
        return analyze_general(
            payload.invoice_results,
            payload.approval_result,
            loans=payload.loans,
            pending_expenses=payload.pending_expenses,
            budget_projects=payload.budget_projects,
            current_budget_project_id=payload.budget_project_id,
            merge=payload.merge,
            prepaid_amount=payload.prepaid_amount,
            context=_context(payload),
        )
    finally:
        reset_analysis_context(token)


def _travel(payload: TravelReconcileIn) -> TravelAnalysis:
    token = set_analysis_context(str(uuid.uuid4()))
    try:
        return analyze_travel(
            payload.ticket_result,
            payload.hotel_result,
            payload.taxi_result,
            payload.approval_result,
            loans=payload.loans,
            budget_projects=payload.budget_projects,
            current_budget_project_id=payload.budget_project_id,
            prepaid_amount=payload.prepaid_amount,
            context=_context(payload),
        )
    finally:
        reset_analysis_context(token)


@router.post("/claims/general/reconcile", response_model=GeneralAnalysis)
def reconcile_general_endpoint(payload: GeneralReconcileIn) -> GeneralAnalysis:
    return _general(payload)


@router.post("/claims/general/analyze", response_model=GeneralAnalysis)
def analyze_general_endpoint(
    payload: GeneralAnalyzeIn,
    session: Session = Depends(db_session),
) -> GeneralAnalysis:
    # invoices go one image per call, so only the approval batch is capped
    check_image_count(payload.approval_images)
    try:
        invoice_results = recognize_each(
            session, images=payload.invoice_images, document_type="invoice"
        )
        approval_result = recognize(
            session, images=payload.approval_images, document_type="approval"
        )
    except RecognitionError as e:
        raise recognition_http_error(e) from e

    reconcile = GeneralReconcileIn(
        **payload.model_dump(exclude={"invoice_images", "approval_images"}),
        invoice_results=invoice_results,
        approval_result=approval_result,
    )
    return _general(reconcile)


@router.post("/claims/travel/reconcile", response_model=TravelAnalysis)
def reconcile_travel_endpoint(payload: TravelReconcileIn) -> TravelAnalysis:
    return _travel(payload)


@router.post("/claims/travel/analyze", response_model=TravelAnalysis)
def analyze_travel_endpoint(
    payload: TravelAnalyzeIn,
    session: Session = Depends(db_session),
) -> TravelAnalysis:
    batches = {
        "ticket": payload.ticket_images,
        "hotel": payload.hotel_images,
        "taxi": payload.taxi_images,
        "approval": payload.approval_images,
    }
    for images in batches.values():
        check_image_count(images)
    try:
        results = {
            document_type: recognize(session, images=images, document_type=document_type)
            for document_type, images in batches.items()
        }
    except RecognitionError as e:
        raise recognition_http_error(e) from e

    reconcile = TravelReconcileIn(
        **payload.model_dump(
            exclude={"ticket_images", "hotel_images", "taxi_images", "approval_images"}
        ),
        ticket_result=results["ticket"],
        hotel_result=results["hotel"],
        taxi_result=results["taxi"],
        approval_result=results["approval"],
    )
    return _travel(reconcile)
