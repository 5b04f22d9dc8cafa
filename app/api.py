"""
FastAPI routes for SMS transaction extraction.
Thin HTTP layer over the extractor, the transaction service and the store.
"""
import asyncio
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, File, HTTPException, UploadFile
from fastapi.responses import FileResponse
from pydantic import BaseModel, Field

from core.config import get_settings
from core.db import get_store
from core.exceptions import ExportError, InvalidInputError, MessageSourceError, StorageError
from core.exporters import create_output_filename, export_to_excel
from core.extraction import classify_messages, sort_records, summarize_outcomes
from core.logger import setup_logger
from core.schema import TransactionRecord
from core.sources import SUPPORTED_FILE_TYPES, normalize_messages
from services.transaction_service import (
    FileMessageSource,
    TransactionService,
    build_kind_statistics,
)

logger = setup_logger(__name__)

app = FastAPI(
    title="SMS Transaction Reader",
    description="Detect bank and payment transactions in SMS messages",
    version="1.0.0"
)


class ExtractRequest(BaseModel):
    """Batch of raw messages in one source shape."""
    messages: List[Dict[str, Any]] = Field(default_factory=list)
    shape: str = Field(default="auto", description="auto, canonical, android or retriever")


def serialize_records(records: List[TransactionRecord]) -> List[Dict[str, Any]]:
    return [record.model_dump(mode="json") for record in records]


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "service": "sms_transaction_reader",
        "version": "1.0.0"
    }


@app.post("/extract")
async def extract_transactions(request: ExtractRequest):
    """
    Extract transactions from a posted batch of messages.

    Args:
        request: Messages and their source shape

    Returns:
        Records (newest first) and extraction statistics
    """
    try:
        messages = normalize_messages(request.messages, request.shape)
    except InvalidInputError as e:
        raise HTTPException(status_code=400, detail={"error": e.message, **e.details})

    outcomes = classify_messages(messages)
    records = sort_records(o.record for o in outcomes if o.record is not None)
    stats = summarize_outcomes(outcomes)

    logger.info(f"Extracted {len(records)} transactions from {len(request.messages)} posted messages")

    return {
        "count": len(records),
        "transactions": serialize_records(records),
        "stats": stats,
    }


def validate_file_extension(filename: Optional[str]) -> None:
    """
    Validate file has a supported inbox export extension.

    Raises:
        HTTPException: If file extension is invalid
    """
    if not filename or not filename.lower().endswith(SUPPORTED_FILE_TYPES):
        raise HTTPException(
            status_code=400,
            detail=f"Invalid file type: {filename}. Supported: {', '.join(SUPPORTED_FILE_TYPES)}"
        )


def save_upload(path: Path, content: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)


@app.post("/upload")
async def upload_messages(
    file: UploadFile = File(...),
    shape: str = "auto",
    days_back: Optional[int] = None
):
    """
    Extract transactions from an uploaded inbox export.
    Records are stored and exported to Excel.

    Args:
        file: Inbox export (.json, .csv, .xlsx, .xls)
        shape: Row shape of the export
        days_back: Only read messages from the last N days

    Returns:
        Records, statistics and the export filename
    """
    settings = get_settings()
    logger.info(f"Received inbox export: {file.filename}")
    validate_file_extension(file.filename)

    upload_path = Path(settings.temp_storage_path) / f"{uuid.uuid4()}_{Path(file.filename).name}"

    loop = asyncio.get_running_loop()

    try:
        content = await file.read()
        await loop.run_in_executor(None, save_upload, upload_path, content)

        service = TransactionService(FileMessageSource(str(upload_path), shape), store=get_store())
        if days_back is None:
            result = await service.read_all()
        else:
            result = await service.read_from_period(days_back)

        records = result["records"]
        output_path = await loop.run_in_executor(
            None, export_to_excel, records, create_output_filename(settings.temp_storage_path)
        )

        return {
            "count": len(records),
            "total_messages": result["total_messages"],
            "transactions": serialize_records(records),
            "stats": result["stats"],
            "filename": Path(output_path).name,
        }

    except (InvalidInputError, MessageSourceError) as e:
        logger.warning(f"Upload {file.filename} rejected: {e.message}")
        raise HTTPException(status_code=400, detail={"error": e.message, **e.details})

    except (ExportError, StorageError) as e:
        logger.error(f"Upload {file.filename} failed: {e.message}", exc_info=True)
        raise HTTPException(status_code=500, detail={"error": e.message, **e.details})

    finally:
        try:
            if upload_path.exists():
                upload_path.unlink()
                logger.debug(f"Cleaned up: {upload_path}")
        except OSError as cleanup_error:
            logger.warning(f"Failed to cleanup {upload_path}: {cleanup_error}")


@app.get("/transactions")
async def list_transactions():
    """Return stored transactions, newest first."""
    try:
        records = get_store().get_all_records()
    except StorageError as e:
        raise HTTPException(status_code=500, detail=e.message)

    return {
        "count": len(records),
        "transactions": serialize_records(records),
        "by_kind": build_kind_statistics(records),
    }


@app.get("/download/{filename}")
async def download_file(filename: str):
    """
    Download an exported workbook.

    Args:
        filename: Name of the file to download

    Returns:
        File response
    """
    # Security: Validate filename to prevent path traversal
    if ".." in filename or "/" in filename or "\\" in filename:
        raise HTTPException(status_code=400, detail="Invalid filename")

    if not filename.endswith(".xlsx"):
        raise HTTPException(status_code=400, detail="Invalid file type")

    storage_root = Path(get_settings().temp_storage_path).resolve()
    file_path = (storage_root / filename).resolve()

    if storage_root not in file_path.parents:
        raise HTTPException(status_code=400, detail="Invalid file path")

    if not file_path.exists():
        raise HTTPException(status_code=404, detail="File not found")

    return FileResponse(
        path=str(file_path),
        filename=filename,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    )
