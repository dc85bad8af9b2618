"""
Document, processing-job and chunk storage.

Every write here is keyed by document id so an ingestion message that is
delivered twice recomputes the same state instead of piling up duplicates.
"""
import json
from typing import Any, Dict, List, Optional

from sqlalchemy import bindparam, text
from sqlalchemy.engine import Engine

from ..chunking import TextChunk
from ..logging_config import logger
from ..schemas import DocumentStatus, JobStatus
from ..utils.helpers import load_json, new_id, utcnow


class DocumentStore:

    def __init__(self, engine: Engine):
        self.engine = engine

    def create_document(
        self,
        chat_id: str,
        user_id: str,
        message_id: Optional[str],
        original_filename: str,
        file_type: str,
        file_size: Optional[int] = None,
        storage_key: Optional[str] = None,
        source_url: Optional[str] = None,
        document_id: Optional[str] = None,
    ) -> str:
        """
        Insert a document in ``pending`` state.

        Returns:
            The document id
        """
        document_id = document_id or new_id()
        with self.engine.begin() as conn:
            conn.execute(
                text("""
                    INSERT INTO documents (
                        id, chat_id, message_id, user_id, original_filename,
                        source_url, file_type, file_size, storage_key,
                        status, chunk_count, created_at
                    )
                    VALUES (
                        :id, :chat_id, :message_id, :user_id, :filename,
                        :source_url, :file_type, :file_size, :storage_key,
                        :status, 0, :created_at
                    )
                """),
                {
                    "id": document_id,
                    "chat_id": chat_id,
                    "message_id": message_id,
                    "user_id": user_id,
                    "filename": original_filename,
                    "source_url": source_url,
                    "file_type": file_type,
                    "file_size": file_size,
                    "storage_key": storage_key,
                    "status": DocumentStatus.PENDING.value,
                    "created_at": utcnow(),
                },
            )
        return document_id

    def get_document(self, document_id: str) -> Optional[Dict[str, Any]]:
        with self.engine.begin() as conn:
            row = conn.execute(
                text("SELECT * FROM documents WHERE id = :id"),
                {"id": document_id},
            ).mappings().first()
        return dict(row) if row else None

    def set_status(self, document_id: str, status: DocumentStatus, error_message: Optional[str] = None) -> None:
        with self.engine.begin() as conn:
            conn.execute(
                text("UPDATE documents SET status = :status, error_message = :err WHERE id = :id"),
                {"status": status.value, "err": error_message, "id": document_id},
            )

    def save_raw_text(self, document_id: str, raw_text: str) -> None:
        with self.engine.begin() as conn:
            conn.execute(
                text("UPDATE documents SET raw_text = :raw WHERE id = :id"),
                {"raw": raw_text, "id": document_id},
            )

    def mark_ready(self, document_id: str) -> None:
        with self.engine.begin() as conn:
            conn.execute(
                text("""
                    UPDATE documents
                    SET status = :status, error_message = NULL, processed_at = :now
                    WHERE id = :id
                """),
                {"status": DocumentStatus.READY.value, "now": utcnow(), "id": document_id},
            )

    def storage_keys_for_chat(self, chat_id: str) -> List[str]:
        with self.engine.begin() as conn:
            rows = conn.execute(
                text("SELECT storage_key FROM documents WHERE chat_id = :cid AND storage_key IS NOT NULL"),
                {"cid": chat_id},
            ).all()
        return [r[0] for r in rows]


class JobStore:
    """Processing-job records, polled by clients until a terminal status."""

    def __init__(self, engine: Engine):
        self.engine = engine

    def create_job(self, document_id: str, job_id: Optional[str] = None) -> str:
        job_id = job_id or new_id()
        now = utcnow()
        with self.engine.begin() as conn:
            conn.execute(
                text("""
                    INSERT INTO processing_jobs (id, document_id, status, progress, created_at, updated_at)
                    VALUES (:id, :doc, :status, 0, :now, :now)
                """),
                {"id": job_id, "doc": document_id, "status": JobStatus.QUEUED.value, "now": now},
            )
        return job_id

    def get_job(self, job_id: str) -> Optional[Dict[str, Any]]:
        with self.engine.begin() as conn:
            row = conn.execute(
                text("""
                    SELECT id, document_id, status, progress, error_message, created_at, updated_at
                    FROM processing_jobs
                    WHERE id = :id
                """),
                {"id": job_id},
            ).mappings().first()
        return dict(row) if row else None

    def get_job_for_user(self, job_id: str, user_id: str) -> Optional[Dict[str, Any]]:
        """Return the job only if its document belongs to ``user_id``."""
        with self.engine.begin() as conn:
            row = conn.execute(
                text("""
                    SELECT pj.id, pj.document_id, pj.status, pj.progress,
                           pj.error_message, pj.created_at, pj.updated_at
                    FROM processing_jobs pj
                    JOIN documents d ON d.id = pj.document_id
                    WHERE pj.id = :id AND d.user_id = :uid
                """),
                {"id": job_id, "uid": user_id},
            ).mappings().first()
        return dict(row) if row else None

    def update(
        self,
        job_id: str,
        status: JobStatus,
        progress: int,
        error_message: Optional[str] = None,
    ) -> None:
        """
        Move a job to ``status`` / ``progress``.

        The error message is overwritten on every transition, so a retried
        job that succeeds no longer reports its earlier failure.
        """
        with self.engine.begin() as conn:
            conn.execute(
                text("""
                    UPDATE processing_jobs
                    SET status = :status, progress = :progress,
                        error_message = :err, updated_at = :now
                    WHERE id = :id
                """),
                {
                    "status": status.value,
                    "progress": progress,
                    "err": error_message,
                    "now": utcnow(),
                    "id": job_id,
                },
            )
        logger.debug("Job transition", job_id=job_id, status=status.value, progress=progress)


class ChunkStore:
    """Chunk text; chunk ids double as vector ids in the vector index."""

    def __init__(self, engine: Engine):
        self.engine = engine

    def ids_for_document(self, document_id: str) -> List[str]:
        with self.engine.begin() as conn:
            rows = conn.execute(
                text("SELECT id FROM document_chunks WHERE document_id = :doc"),
                {"doc": document_id},
            ).all()
        return [r[0] for r in rows]

    def ids_for_chat(self, chat_id: str) -> List[str]:
        with self.engine.begin() as conn:
            rows = conn.execute(
                text("""
                    SELECT dc.id
                    FROM document_chunks dc
                    JOIN documents d ON d.id = dc.document_id
                    WHERE d.chat_id = :cid
                """),
                {"cid": chat_id},
            ).all()
        return [r[0] for r in rows]

    def replace_chunks(self, document_id: str, chunks: List[TextChunk]) -> None:
        """
        Store ``chunks`` as the complete chunk set of a document and update
        its chunk count, dropping whatever an earlier attempt left behind.
        """
        with self.engine.begin() as conn:
            conn.execute(
                text("DELETE FROM document_chunks WHERE document_id = :doc"),
                {"doc": document_id},
            )
            if chunks:
                conn.execute(
                    text("""
                        INSERT INTO document_chunks (id, document_id, chunk_index, content, metadata)
                        VALUES (:id, :doc, :idx, :content, :meta)
                    """),
                    [
                        {
                            "id": chunk.id,
                            "doc": document_id,
                            "idx": chunk.index,
                            "content": chunk.content,
                            "meta": json.dumps(chunk.metadata),
                        }
                        for chunk in chunks
                    ],
                )
            conn.execute(
                text("UPDATE documents SET chunk_count = :n WHERE id = :doc"),
                {"n": len(chunks), "doc": document_id},
            )

    def get_by_ids(self, ids: List[str]) -> List[Dict[str, Any]]:
        """
        Resolve vector ids back to chunk text.

        Returns:
            Chunks in the order of ``ids``; unknown ids are skipped
        """
        if not ids:
            return []

        stmt = text("""
            SELECT id, document_id, chunk_index, content, metadata
            FROM document_chunks
            WHERE id IN :ids
        """).bindparams(bindparam("ids", expanding=True))

        with self.engine.begin() as conn:
            rows = conn.execute(stmt, {"ids": list(ids)}).mappings().all()

        by_id = {}
        for row in rows:
            meta = load_json(row["metadata"], default={}) or {}
            by_id[row["id"]] = {
                "id": row["id"],
                "document_id": row["document_id"],
                "chunk_index": row["chunk_index"],
                "content": row["content"],
                "section": meta.get("section"),
                "page": meta.get("page"),
            }
        return [by_id[i] for i in ids if i in by_id]
