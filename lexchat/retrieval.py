"""
pgvector-backed vector index.

Vectors live in ``chunk_vectors`` keyed by chunk id; the metadata columns
double as equality filters so every search is scoped to one chat and user.
"""
from time import perf_counter
from typing import Any, Dict, List, Optional

from sqlalchemy import bindparam, text as sa_text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from .errors import CapabilityError
from .interfaces import VectorIndex, VectorMatch, VectorRecord
from .logging_config import logger

METADATA_COLUMNS = ("document_id", "chat_id", "user_id", "chunk_index", "section", "page")


class PgVectorIndex(VectorIndex):

    def __init__(self, engine: Engine):
        self.engine = engine

    async def upsert(self, vectors: List[VectorRecord]) -> None:
        if not vectors:
            return
        rows = []
        for v in vectors:
            meta = v.metadata
            rows.append({
                "id": v.id,
                "emb": list(v.values),
                "document_id": meta["document_id"],
                "chat_id": meta["chat_id"],
                "user_id": meta["user_id"],
                "chunk_index": meta["chunk_index"],
                "section": meta.get("section") or "",
                "page": meta.get("page") or 0,
            })
        try:
            with self.engine.begin() as conn:
                conn.execute(
                    sa_text("""
                        INSERT INTO chunk_vectors
                            (id, embedding, document_id, chat_id, user_id, chunk_index, section, page)
                        VALUES
                            (:id, (:emb)::vector, :document_id, :chat_id, :user_id, :chunk_index, :section, :page)
                        ON CONFLICT (id) DO UPDATE SET
                            embedding = EXCLUDED.embedding,
                            document_id = EXCLUDED.document_id,
                            chat_id = EXCLUDED.chat_id,
                            user_id = EXCLUDED.user_id,
                            chunk_index = EXCLUDED.chunk_index,
                            section = EXCLUDED.section,
                            page = EXCLUDED.page
                    """),
                    rows,
                )
        except SQLAlchemyError as e:
            raise CapabilityError(f"Vector upsert failed: {e}") from e

    async def query(
        self,
        vector: List[float],
        top_k: int,
        filter: Optional[Dict[str, Any]] = None,
        return_metadata: bool = True,
    ) -> List[VectorMatch]:
        """
        Cosine-similarity search restricted by equality filters.

        Raises:
            ValueError: If a filter key is not an indexed metadata column
            CapabilityError: If the database call fails
        """
        where = []
        params: Dict[str, Any] = {"qv": list(vector), "k": top_k}
        for key, value in (filter or {}).items():
            if key not in METADATA_COLUMNS:
                raise ValueError(f"Cannot filter vectors on '{key}'")
            where.append(f"{key} = :f_{key}")
            params[f"f_{key}"] = value
        where_sql = f"WHERE {' AND '.join(where)}" if where else ""

        t = perf_counter()
        try:
            with self.engine.begin() as conn:
                rows = conn.execute(
                    sa_text(f"""
                        SELECT id, {', '.join(METADATA_COLUMNS)},
                               1 - (embedding <=> (:qv)::vector) AS score
                        FROM chunk_vectors
                        {where_sql}
                        ORDER BY embedding <=> (:qv)::vector
                        LIMIT :k
                    """),
                    params,
                ).mappings().all()
        except SQLAlchemyError as e:
            raise CapabilityError(f"Vector query failed: {e}") from e
        logger.info("Vector search finished", matches=len(rows), ms=round((perf_counter() - t) * 1000, 2))

        return [
            VectorMatch(
                id=r["id"],
                score=float(r["score"]),
                metadata={c: r[c] for c in METADATA_COLUMNS} if return_metadata else {},
            )
            for r in rows
        ]

    async def delete_by_ids(self, ids: List[str]) -> None:
        if not ids:
            return
        stmt = sa_text("DELETE FROM chunk_vectors WHERE id IN :ids").bindparams(
            bindparam("ids", expanding=True)
        )
        try:
            with self.engine.begin() as conn:
                conn.execute(stmt, {"ids": list(ids)})
        except SQLAlchemyError as e:
            raise CapabilityError(f"Vector delete failed: {e}") from e
