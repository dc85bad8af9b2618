"""
Message routes.
Posting a message either queues a document for ingestion or answers the
question with a streamed RAG response (Server-Sent Events).
"""
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.datastructures import UploadFile

from ..config import MAX_MESSAGE_CHARS
from ..context import PipelineContext, get_context
from ..logging_config import logger
from ..schemas import SendMessageBody
from ..services.rag_service import handle_rag_query
from ..upload import submit_file, submit_url, validate_upload
from .chat import get_user_id, require_chat

router = APIRouter(prefix="/api/chats", tags=["messages"])


async def _read_message(request: Request):
    """
    Accept either JSON {content, url} or multipart with content / file / url.

    Returns:
        Tuple of (content, upload or None, url or None)
    """
    content_type = request.headers.get("content-type", "")

    if content_type.startswith("multipart/form-data"):
        form = await request.form()
        content = form.get("content") or ""
        url = form.get("url") or None
        upload = form.get("file")
        if not isinstance(upload, UploadFile) or not upload.filename:
            upload = None
        if not isinstance(content, str) or len(content) > MAX_MESSAGE_CHARS:
            raise HTTPException(status_code=400, detail="Invalid message content")
        return content.strip(), upload, url

    try:
        body = SendMessageBody.model_validate(await request.json())
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Invalid request body: {e}")
    return (body.content or "").strip(), None, body.url


@router.post("/{chat_id}/messages")
async def send_message(
    chat_id: str,
    request: Request,
    user_id: str = Depends(get_user_id),
    ctx: PipelineContext = Depends(get_context),
):
    """
    Workflow:
    1. Validate input (text, file or URL required; file type and size)
    2. Store the user message
    3. File / URL: create document + job, enqueue, answer 202
    4. Text only: stream the RAG answer
    """
    require_chat(ctx, chat_id, user_id)
    content, upload, url = await _read_message(request)

    if not content and upload is None and not url:
        raise HTTPException(status_code=400, detail="Provide text, a file, or a URL")

    data = None
    if upload is not None:
        data = await upload.read()
        validate_upload(upload.filename, len(data))

    display_content = content
    if upload is not None:
        display_content = "\n".join(p for p in (content, f"[Uploaded: {upload.filename}]") if p)
    elif url:
        display_content = "\n".join(p for p in (content, f"[Link: {url}]") if p)

    user_message_id = ctx.chats.store_message(chat_id, "user", display_content)
    ctx.chats.touch_chat(chat_id)

    if upload is not None:
        submitted = await submit_file(ctx, chat_id, user_id, user_message_id, upload.filename, data)
    elif url:
        submitted = submit_url(ctx, chat_id, user_id, user_message_id, url)
    else:
        submitted = None

    if submitted:
        # The client polls the job and asks again once the document is ready
        return JSONResponse(
            {
                "data": {
                    "userMessageId": user_message_id,
                    "documentId": submitted["documentId"],
                    "jobId": submitted["jobId"],
                    "hasQuery": bool(content),
                    "status": "Document queued for processing",
                }
            },
            status_code=202,
        )

    result = await handle_rag_query(ctx, chat_id, user_id, content, user_message_id=user_message_id)
    if isinstance(result, dict):
        return JSONResponse(result)

    logger.info("Streaming answer", chat_id=chat_id, user_message_id=user_message_id)
    return StreamingResponse(
        result,
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )


@router.get("/jobs/{job_id}/status")
async def get_job_status(
    job_id: str,
    user_id: str = Depends(get_user_id),
    ctx: PipelineContext = Depends(get_context),
):
    """Polled by clients until status is ready or failed."""
    job = ctx.jobs.get_job_for_user(job_id, user_id)
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")
    return {
        "data": {
            "id": job["id"],
            "documentId": job["document_id"],
            "status": job["status"],
            "progress": job["progress"],
            "errorMessage": job["error_message"],
            "createdAt": job["created_at"],
            "updatedAt": job["updated_at"],
        }
    }
