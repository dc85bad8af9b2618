"""
Upload validation and submission of documents for ingestion.

Validation failures are request errors: they are raised before any
document or job row exists.
"""
import os
from typing import Dict, Optional

from fastapi import HTTPException

from .config import ALLOWED_EXTENSIONS, MAX_FILE_SIZE_BYTES
from .context import PipelineContext
from .logging_config import logger
from .schemas import IngestionMessage
from .storage import storage_key
from .utils.helpers import new_id


def file_extension(filename: str) -> str:
    _, ext = os.path.splitext(filename or "")
    return ext[1:].lower()


def is_allowed_extension(filename: str) -> bool:
    return file_extension(filename) in ALLOWED_EXTENSIONS


def is_within_size_limit(size_bytes: int) -> bool:
    return 0 <= size_bytes <= MAX_FILE_SIZE_BYTES


def validate_upload(filename: str, size_bytes: int) -> None:
    """Raise 400 for unsupported or oversized files."""
    if not is_allowed_extension(filename):
        raise HTTPException(
            status_code=400,
            detail="File type not supported. Use PDF, TXT, DOC, or DOCX.",
        )
    if not is_within_size_limit(size_bytes):
        raise HTTPException(
            status_code=400,
            detail=(
                f"File '{filename}' is too large. "
                f"Max size is {MAX_FILE_SIZE_BYTES // (1024 * 1024)} MB."
            ),
        )


async def submit_file(
    ctx: PipelineContext,
    chat_id: str,
    user_id: str,
    message_id: str,
    filename: str,
    data: bytes,
) -> Dict[str, str]:
    """
    Store an uploaded file, create its Document + ProcessingJob and enqueue it.

    Returns:
        {"documentId": ..., "jobId": ...}
    """
    document_id = new_id()
    key = storage_key(user_id, chat_id, document_id, filename)
    await ctx.storage.put(key, data)

    file_type = file_extension(filename)
    ctx.documents.create_document(
        chat_id=chat_id,
        user_id=user_id,
        message_id=message_id,
        original_filename=filename,
        file_type=file_type,
        file_size=len(data),
        storage_key=key,
        document_id=document_id,
    )
    job_id = ctx.jobs.create_job(document_id)

    ctx.queue.send(IngestionMessage(
        document_id=document_id,
        job_id=job_id,
        chat_id=chat_id,
        user_id=user_id,
        r2_key=key,
        filename=filename,
        file_type=file_type,
    ))
    logger.info("File queued for processing", document_id=document_id, job_id=job_id, size=len(data))
    return {"documentId": document_id, "jobId": job_id}


def submit_url(
    ctx: PipelineContext,
    chat_id: str,
    user_id: str,
    message_id: Optional[str],
    url: str,
) -> Dict[str, str]:
    """Create a Document + ProcessingJob for a web page and enqueue it."""
    document_id = ctx.documents.create_document(
        chat_id=chat_id,
        user_id=user_id,
        message_id=message_id,
        original_filename=url,
        file_type="url",
        source_url=url,
    )
    job_id = ctx.jobs.create_job(document_id)

    ctx.queue.send(IngestionMessage(
        document_id=document_id,
        job_id=job_id,
        chat_id=chat_id,
        user_id=user_id,
        source_url=url,
        filename=url,
        file_type="url",
    ))
    logger.info("URL queued for processing", document_id=document_id, job_id=job_id, url=url)
    return {"documentId": document_id, "jobId": job_id}
