"""
Celery worker for document ingestion.

Start with:
    celery -A lexchat.worker worker --loglevel=info

Messages are acknowledged only after the task finishes, so a worker that
dies mid-document leaves the message for redelivery. The pipeline itself
is idempotent per document.
"""
import asyncio
from typing import Any, Dict, Optional

from celery import Celery

from .config import (
    CELERY_BROKER_URL,
    CELERY_MAX_RETRIES,
    CELERY_RESULT_BACKEND,
    CELERY_RETRY_DELAY_SECONDS,
    CELERY_TASK_ALWAYS_EAGER,
)
from .context import get_context
from .interfaces import JobQueue
from .logging_config import logger
from .schemas import IngestionMessage
from .services.ingestion_service import process_document

celery_app = Celery(
    "lexchat",
    broker=CELERY_BROKER_URL,
    backend=CELERY_RESULT_BACKEND,
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    result_expires=3600,
    task_default_retry_delay=CELERY_RETRY_DELAY_SECONDS,
    task_always_eager=CELERY_TASK_ALWAYS_EAGER,
    task_eager_propagates=True,
)

_loop: Optional[asyncio.AbstractEventLoop] = None


def run_async(coro):
    """
    Run a coroutine on this worker process's event loop.

    The loop stays open between tasks: the cached context holds async
    clients whose connection pools are bound to the loop that first used them.
    """
    global _loop
    if _loop is None or _loop.is_closed():
        _loop = asyncio.new_event_loop()
    return _loop.run_until_complete(coro)


@celery_app.task(bind=True, name="lexchat.process_document", max_retries=CELERY_MAX_RETRIES)
def process_document_task(self, payload: Dict[str, Any]) -> str:
    """
    Process one uploaded file or URL into chunks and vectors.

    Pipeline failures are recorded on the job and do not retry; only an
    error escaping the pipeline (e.g. the database being unreachable while
    recording a failure) asks Celery for another delivery.
    """
    message = IngestionMessage.model_validate(payload)
    logger.info(
        "Ingestion task received",
        job_id=message.job_id,
        document_id=message.document_id,
        attempt=self.request.retries,
    )
    try:
        status = run_async(process_document(get_context(), message))
        return status.value
    except Exception as e:
        logger.error("Ingestion task error, retrying", job_id=message.job_id, error=str(e))
        raise self.retry(exc=e)


class CeleryJobQueue(JobQueue):
    """JobQueue backed by the Celery broker."""

    def send(self, message: IngestionMessage) -> None:
        process_document_task.delay(message.to_payload())
