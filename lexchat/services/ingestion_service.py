"""
Document ingestion pipeline.

Drives one ProcessingJob through

    queued -> parsing(10) -> parsing(30) -> chunking(40) -> chunking(60)
           -> embedding(70) -> embedding(90) -> ready(100)

and mirrors the job on its Document (pending -> processing -> ready).
Any error moves both to ``failed`` with the error text. Nothing is retried
here; redelivery belongs to the queue, and every write is keyed by document
id so a repeated run replaces earlier results.
"""
import time
from typing import List

from ..chunking import TextChunk, chunk_text
from ..config import EMBED_BATCH_SIZE, MIN_EXTRACTED_CHARS
from ..context import PipelineContext
from ..errors import CapabilityError, ExtractionError
from ..interfaces import VectorRecord
from ..logging_config import logger
from ..schemas import DocumentStatus, IngestionMessage, JobStatus
from ..text_extraction import decode_text

EXTRACTOR_FILE_TYPES = ("pdf", "doc", "docx")


async def _extract_text(ctx: PipelineContext, message: IngestionMessage) -> str:
    """
    Produce raw text for the document referenced by ``message``.

    Stored files are decoded (txt) or handed to the extractor (pdf/doc/docx);
    when the extractor fails the bytes are decoded as-is. URLs are fetched
    and stripped of markup.
    """
    if message.r2_key:
        data = await ctx.storage.get(message.r2_key)
        if data is None:
            raise ExtractionError("File not found in storage")

        file_type = message.file_type.lower()
        if file_type == "txt":
            return decode_text(data)
        if file_type in EXTRACTOR_FILE_TYPES:
            try:
                return await ctx.extractor.extract_text(data, file_type)
            except CapabilityError as e:
                logger.warning(
                    "Extractor failed, decoding raw bytes",
                    document_id=message.document_id,
                    file_type=file_type,
                    error=str(e),
                )
                return decode_text(data)
        return ""

    return await ctx.url_fetcher.fetch_text(message.source_url)


async def _replace_chunks(ctx: PipelineContext, document_id: str, chunks: List[TextChunk]) -> None:
    """Drop vectors and chunks left by an earlier delivery, then store ``chunks``."""
    stale_ids = ctx.chunks.ids_for_document(document_id)
    if stale_ids:
        logger.info("Removing chunks from earlier attempt", document_id=document_id, count=len(stale_ids))
        await ctx.vector_index.delete_by_ids(stale_ids)
    ctx.chunks.replace_chunks(document_id, chunks)


async def _embed_chunks(ctx: PipelineContext, message: IngestionMessage, chunks: List[TextChunk]) -> None:
    """Embed chunks in batches and upsert them into the vector index."""
    for start in range(0, len(chunks), EMBED_BATCH_SIZE):
        batch = chunks[start:start + EMBED_BATCH_SIZE]
        vectors = await ctx.embedder.embed([c.content for c in batch])
        if len(vectors) != len(batch):
            raise CapabilityError(
                f"Embedder returned {len(vectors)} vectors for {len(batch)} chunks"
            )

        await ctx.vector_index.upsert([
            VectorRecord(
                id=chunk.id,
                values=vector,
                metadata={
                    "document_id": message.document_id,
                    "chat_id": message.chat_id,
                    "user_id": message.user_id,
                    "chunk_index": chunk.index,
                    "section": chunk.metadata.get("section") or "",
                    "page": chunk.metadata.get("page") or 0,
                },
            )
            for chunk, vector in zip(batch, vectors)
        ])
        logger.debug("Embedded batch", document_id=message.document_id, start=start, size=len(batch))


async def process_document(ctx: PipelineContext, message: IngestionMessage) -> JobStatus:
    """
    Run the full ingestion pipeline for one queue message.

    Args:
        ctx: Capability handles and stores
        message: The ingestion trigger

    Returns:
        The terminal job status (ready or failed)

    Raises:
        Exception: Only if recording the failure itself fails; the caller
            should then ask the queue for redelivery
    """
    job_id, document_id = message.job_id, message.document_id
    log = logger.bind(job_id=job_id, document_id=document_id, chat_id=message.chat_id)
    start_time = time.time()

    job = ctx.jobs.get_job(job_id)
    if job and job["status"] == JobStatus.READY.value:
        log.info("Job already completed, skipping redelivered message")
        return JobStatus.READY

    try:
        # Stage 1: extract
        ctx.jobs.update(job_id, JobStatus.PARSING, 10)
        ctx.documents.set_status(document_id, DocumentStatus.PROCESSING)

        raw_text = await _extract_text(ctx, message)
        if not raw_text or len(raw_text.strip()) < MIN_EXTRACTED_CHARS:
            raise ExtractionError("Could not extract meaningful text from the document")

        ctx.jobs.update(job_id, JobStatus.PARSING, 30)
        ctx.documents.save_raw_text(document_id, raw_text)
        log.info("Extracted text", chars=len(raw_text))

        # Stage 2: chunk
        ctx.jobs.update(job_id, JobStatus.CHUNKING, 40)
        chunks = chunk_text(raw_text)
        if not chunks:
            raise ExtractionError("Could not extract meaningful text from the document")
        ctx.jobs.update(job_id, JobStatus.CHUNKING, 60)

        await _replace_chunks(ctx, document_id, chunks)
        log.info("Created chunks", chunk_count=len(chunks))

        # Stage 3: embed
        ctx.jobs.update(job_id, JobStatus.EMBEDDING, 70)
        await _embed_chunks(ctx, message, chunks)
        ctx.jobs.update(job_id, JobStatus.EMBEDDING, 90)

        ctx.jobs.update(job_id, JobStatus.READY, 100)
        ctx.documents.mark_ready(document_id)

    except Exception as e:
        error_message = str(e) or e.__class__.__name__
        log.error("Document processing failed", error=error_message, exc_info=e)
        ctx.jobs.update(job_id, JobStatus.FAILED, 0, error_message)
        ctx.documents.set_status(document_id, DocumentStatus.FAILED, error_message)
        return JobStatus.FAILED

    elapsed_ms = round((time.time() - start_time) * 1000, 2)
    log.info("Document ready", chunk_count=len(chunks), time_ms=elapsed_ms)
    return JobStatus.READY
