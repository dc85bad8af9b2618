"""
Conversation management service.
Handles storage of chat sessions and their messages.
"""
import json
from typing import Any, Dict, List, Optional

from sqlalchemy import bindparam, text
from sqlalchemy.engine import Engine

from ..logging_config import logger
from ..utils.helpers import load_json, new_id, utcnow


def _message_dict(row) -> Dict[str, Any]:
    msg = dict(row)
    msg["citations"] = load_json(msg.get("citations"))
    return msg


class ChatStore:
    """Chats and their ordered transcript of messages."""

    def __init__(self, engine: Engine):
        self.engine = engine

    # ==================== Chats ====================

    def create_chat(self, user_id: str, title: Optional[str] = None) -> Dict[str, Any]:
        """
        Create a new chat session owned by ``user_id``.

        Returns:
            The stored chat row
        """
        now = utcnow()
        chat = {
            "id": new_id(),
            "user_id": user_id,
            "title": title or "New Chat",
            "created_at": now,
            "updated_at": now,
        }
        with self.engine.begin() as conn:
            conn.execute(
                text("""
                    INSERT INTO chats (id, user_id, title, created_at, updated_at)
                    VALUES (:id, :user_id, :title, :created_at, :updated_at)
                """),
                chat,
            )
        logger.info("Created new chat", chat_id=chat["id"], user_id=user_id)
        return chat

    def list_chats(self, user_id: str) -> List[Dict[str, Any]]:
        with self.engine.begin() as conn:
            rows = conn.execute(
                text("""
                    SELECT id, user_id, title, created_at, updated_at
                    FROM chats
                    WHERE user_id = :uid
                    ORDER BY updated_at DESC
                """),
                {"uid": user_id},
            ).mappings().all()
        return [dict(r) for r in rows]

    def get_chat(self, chat_id: str, user_id: str) -> Optional[Dict[str, Any]]:
        """Return the chat if it exists and belongs to ``user_id``."""
        with self.engine.begin() as conn:
            row = conn.execute(
                text("""
                    SELECT id, user_id, title, created_at, updated_at
                    FROM chats
                    WHERE id = :cid AND user_id = :uid
                """),
                {"cid": chat_id, "uid": user_id},
            ).mappings().first()
        return dict(row) if row else None

    def rename_chat(self, chat_id: str, title: str) -> None:
        with self.engine.begin() as conn:
            conn.execute(
                text("UPDATE chats SET title = :title, updated_at = :now WHERE id = :cid"),
                {"title": title, "now": utcnow(), "cid": chat_id},
            )

    def touch_chat(self, chat_id: str) -> None:
        with self.engine.begin() as conn:
            conn.execute(
                text("UPDATE chats SET updated_at = :now WHERE id = :cid"),
                {"now": utcnow(), "cid": chat_id},
            )

    def delete_chat(self, chat_id: str) -> None:
        """
        Delete a chat and every row that hangs off it.

        Rows are removed explicitly, children first, so the result does not
        depend on the database enforcing ON DELETE CASCADE.
        """
        chat_docs = "SELECT id FROM documents WHERE chat_id = :cid"
        with self.engine.begin() as conn:
            conn.execute(
                text(f"DELETE FROM document_chunks WHERE document_id IN ({chat_docs})"),
                {"cid": chat_id},
            )
            conn.execute(
                text(f"DELETE FROM processing_jobs WHERE document_id IN ({chat_docs})"),
                {"cid": chat_id},
            )
            conn.execute(text("DELETE FROM documents WHERE chat_id = :cid"), {"cid": chat_id})
            conn.execute(text("DELETE FROM messages WHERE chat_id = :cid"), {"cid": chat_id})
            conn.execute(text("DELETE FROM chats WHERE id = :cid"), {"cid": chat_id})
        logger.info("Deleted chat", chat_id=chat_id)

    # ==================== Messages ====================

    def store_message(
        self,
        chat_id: str,
        role: str,
        content: str,
        citations: Optional[List[Dict]] = None,
    ) -> str:
        """
        Append a message to the chat transcript.

        Args:
            chat_id: The chat ID
            role: "user" or "assistant"
            content: The message content
            citations: Optional list of citations backing an assistant answer

        Returns:
            The id of the new message
        """
        message_id = new_id()
        with self.engine.begin() as conn:
            conn.execute(
                text("""
                    INSERT INTO messages (id, chat_id, role, content, citations, created_at)
                    VALUES (:id, :cid, :role, :content, :citations, :created_at)
                """),
                {
                    "id": message_id,
                    "cid": chat_id,
                    "role": role,
                    "content": content,
                    "citations": json.dumps(citations) if citations is not None else None,
                    "created_at": utcnow(),
                },
            )
        logger.debug("Stored message", chat_id=chat_id, role=role, message_id=message_id)
        return message_id

    def list_messages(self, chat_id: str) -> List[Dict[str, Any]]:
        """All messages of a chat in conversation order."""
        with self.engine.begin() as conn:
            rows = conn.execute(
                text("""
                    SELECT id, chat_id, role, content, citations, created_at
                    FROM messages
                    WHERE chat_id = :cid
                    ORDER BY created_at ASC
                """),
                {"cid": chat_id},
            ).mappings().all()
        return [_message_dict(r) for r in rows]

    def recent_messages(
        self,
        chat_id: str,
        limit: int,
        exclude_ids: Optional[List[str]] = None,
    ) -> List[Dict[str, str]]:
        """
        The most recent ``limit`` messages, returned oldest to newest.

        Args:
            chat_id: The chat ID
            limit: Maximum number of messages
            exclude_ids: Message ids to leave out (e.g. the question being answered)
        """
        query = """
            SELECT role, content
            FROM messages
            WHERE chat_id = :cid
        """
        params: Dict[str, Any] = {"cid": chat_id, "limit": limit}
        if exclude_ids:
            query += " AND id NOT IN :exclude"
            params["exclude"] = list(exclude_ids)
        query += " ORDER BY created_at DESC LIMIT :limit"

        stmt = text(query)
        if exclude_ids:
            stmt = stmt.bindparams(bindparam("exclude", expanding=True))

        with self.engine.begin() as conn:
            rows = conn.execute(stmt, params).mappings().all()

        return [{"role": r["role"], "content": r["content"]} for r in reversed(rows)]
