"""
Receipt API.

Analysis (stateless, proxies to the extraction model) plus CRUD over the
caller's receipts. Everything except /analyze-receipt requires a Bearer
token and only ever touches receipts linked to that account.
"""

import asyncio
import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response
from sqlalchemy.orm import Session

from unibon.agents.schemas import (
    AnalyzeReceiptRequest,
    ReceiptStats,
    SaveReceiptRequest,
    UpdateNotesRequest,
    UserReceiptOut,
)
from unibon.database import get_db
from unibon.middleware.auth import get_user_id, verify_bearer_token
from unibon.services import extraction
from unibon.services.receipts import (
    create_receipt_for_account,
    delete_receipt as delete_stored_receipt,
    get_account_receipt,
    list_receipts_for_account,
    stats_for_account,
    unlink_receipt,
    update_receipt_notes,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["receipts"])


@router.post("/analyze-receipt")
async def analyze_receipt(request: AnalyzeReceiptRequest):
    """
    Run extraction on an image and return the model's JSON untouched.

    The caller may pass its own apiKey; otherwise OPENAI_API_KEY is used.
    """
    if not request.image:
        raise HTTPException(status_code=400, detail="Image data is required")

    try:
        raw = await asyncio.to_thread(extraction.analyze_receipt_image, request.image, request.apiKey)
    except Exception as e:
        logger.error(f"Error processing receipt: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e) or "Internal Server Error")

    return Response(content=raw, media_type="application/json")


@router.post("/receipts", response_model=UserReceiptOut, status_code=201)
async def save_receipt(
    request: SaveReceiptRequest,
    token_payload: dict = Depends(verify_bearer_token),
    db: Session = Depends(get_db)
):
    if request.receipt is None:
        raise HTTPException(status_code=400, detail="Receipt data is required")

    return create_receipt_for_account(
        db,
        get_user_id(token_payload),
        request.receipt,
        notes=request.notes,
        raw_response=request.receipt.model_dump_json(),
    )


@router.get("/receipts", response_model=list[UserReceiptOut])
async def list_receipts(
    token_payload: dict = Depends(verify_bearer_token),
    db: Session = Depends(get_db)
):
    return list_receipts_for_account(db, get_user_id(token_payload))


# Declared before /receipts/{receipt_id} so "stats" is not taken for an id
@router.get("/receipts/stats", response_model=ReceiptStats)
async def receipt_stats(
    token_payload: dict = Depends(verify_bearer_token),
    db: Session = Depends(get_db)
):
    return stats_for_account(db, get_user_id(token_payload))


@router.get("/receipts/{receipt_id}", response_model=UserReceiptOut)
async def get_receipt(
    receipt_id: str,
    token_payload: dict = Depends(verify_bearer_token),
    db: Session = Depends(get_db)
):
    receipt = get_account_receipt(db, get_user_id(token_payload), receipt_id)
    if receipt is None:
        raise HTTPException(status_code=404, detail="Receipt not found")
    return receipt


@router.delete("/receipts/{receipt_id}")
async def delete_receipt(
    receipt_id: str,
    token_payload: dict = Depends(verify_bearer_token),
    db: Session = Depends(get_db)
):
    user_id = get_user_id(token_payload)

    if get_account_receipt(db, user_id, receipt_id) is None:
        raise HTTPException(status_code=404, detail="Receipt not found")

    unlink_receipt(db, user_id, receipt_id)
    delete_stored_receipt(db, receipt_id)

    return {"message": "Receipt deleted successfully"}


@router.put("/receipts/{receipt_id}/notes")
async def update_notes(
    receipt_id: str,
    request: UpdateNotesRequest,
    token_payload: dict = Depends(verify_bearer_token),
    db: Session = Depends(get_db)
):
    if not update_receipt_notes(db, get_user_id(token_payload), receipt_id, request.notes):
        raise HTTPException(status_code=404, detail="Receipt not found")

    return {"message": "Notes updated successfully"}
