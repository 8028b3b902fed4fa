"""
Receipts API router: upload a receipt file, retrieve and list results.
"""

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from fastapi.concurrency import run_in_threadpool
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional
import logging
import os
import tempfile
import uuid

from receipt_app.config import settings
from receipt_app.models.receipt import ReceiptResult
from receipt_app.services.ocr import OCRError, TextExtractionProvider, get_ocr_provider
from receipt_app.services.parser import ReceiptParser
from receipt_app.services.storage import ReceiptStore, get_receipt_store

router = APIRouter(prefix="/api/receipts", tags=["receipts"])
logger = logging.getLogger(__name__)

ALLOWED_TYPES = ["image/png", "image/jpeg", "image/jpg", "application/pdf"]


def get_text_extractor() -> TextExtractionProvider:
    """FastAPI dependency returning the configured OCR provider."""
    return get_ocr_provider(settings.OCR_PROVIDER)


def _save_upload(file_data: bytes, filename: str) -> str:
    """Write upload bytes to a temporary file in the upload directory."""
    upload_dir = Path(settings.UPLOAD_DIR)
    upload_dir.mkdir(parents=True, exist_ok=True)
    suffix = Path(filename).suffix
    with tempfile.NamedTemporaryFile(dir=upload_dir, suffix=suffix, delete=False) as tmp:
        tmp.write(file_data)
        return tmp.name


def _remove_upload(file_path: str) -> None:
    try:
        os.unlink(file_path)
    except OSError:
        logger.error("Failed to delete temp file", extra={"file_path": file_path}, exc_info=True)


@router.post("", response_model=ReceiptResult)
async def upload_receipt(
    file: Optional[UploadFile] = File(None),
    ocr: TextExtractionProvider = Depends(get_text_extractor),
    store: ReceiptStore = Depends(get_receipt_store),
):
    """
    Upload a receipt image/PDF and extract its fields.

    This endpoint:
    1. Validates the upload (type and size)
    2. Writes it to a temporary file
    3. Extracts text with the OCR provider
    4. Parses the text into a ReceiptRecord
    5. Stores and returns the result

    The temporary file is removed whatever the outcome.
    """
    if file is None:
        raise HTTPException(status_code=400, detail="No file uploaded")

    if file.content_type not in ALLOWED_TYPES:
        raise HTTPException(status_code=400, detail="Only images and PDFs are allowed")

    file_data = await file.read()
    file_size_mb = len(file_data) / (1024 * 1024)
    if file_size_mb > settings.MAX_UPLOAD_MB:
        raise HTTPException(
            status_code=400,
            detail=f"File too large: {file_size_mb:.2f}MB. Maximum: {settings.MAX_UPLOAD_MB}MB"
        )

    receipt_id = str(uuid.uuid4())
    uploaded_at = datetime.now(timezone.utc).isoformat()
    filename = file.filename or "uploaded_receipt"

    try:
        file_path = _save_upload(file_data, filename)
    except OSError:
        logger.error("Failed to write upload", extra={"receipt_id": receipt_id}, exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to process receipt")

    try:
        raw_text = await run_in_threadpool(ocr.extract_text, file_path)
        logger.debug("Raw OCR text", extra={"receipt_id": receipt_id, "text": raw_text})

        parsed = ReceiptParser().parse(raw_text)
        logger.debug("Parsed receipt data", extra={
            "receipt_id": receipt_id,
            "data": parsed.model_dump(mode='json', by_alias=True),
        })

        result = ReceiptResult(
            id=receipt_id,
            filename=filename,
            uploaded_at=uploaded_at,
            data=parsed,
        )
        store.save(result)

        logger.info("Receipt processed", extra={
            "receipt_id": receipt_id,
            "receipt_filename": filename,
            "amount": str(parsed.amount),
        })
        return result

    except OCRError:
        logger.error("Text extraction failed", extra={"receipt_id": receipt_id}, exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to extract text from receipt")
    except Exception:
        logger.error("Error uploading receipt", extra={"receipt_id": receipt_id}, exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to process receipt")
    finally:
        _remove_upload(file_path)


@router.get("/{receipt_id}", response_model=ReceiptResult)
async def get_receipt(receipt_id: str, store: ReceiptStore = Depends(get_receipt_store)):
    """Retrieve a previously processed receipt."""
    receipt = store.get(receipt_id)
    if receipt is None:
        raise HTTPException(status_code=404, detail="Receipt not found")
    return receipt


@router.get("", response_model=List[ReceiptResult])
async def list_receipts(store: ReceiptStore = Depends(get_receipt_store)):
    """List all processed receipts."""
    return store.list()
