from sqlalchemy import Column, String, Text, Integer, ForeignKey, BigInteger, TIMESTAMP
from sqlalchemy.orm import declarative_base
from pgvector.sqlalchemy import Vector

from .config import EMBED_DIM

Base = declarative_base()


class ChatSession(Base):
    __tablename__ = "chats"
    id = Column(String, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    title = Column(Text, nullable=False)
    created_at = Column(TIMESTAMP(timezone=True), nullable=False)
    updated_at = Column(TIMESTAMP(timezone=True), nullable=False)


class Message(Base):
    __tablename__ = "messages"
    id = Column(String, primary_key=True)
    chat_id = Column(String, ForeignKey("chats.id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(String, nullable=False)
    content = Column(Text, nullable=False)
    citations = Column(Text)  # JSON list
    created_at = Column(TIMESTAMP(timezone=True), nullable=False)


class Document(Base):
    __tablename__ = "documents"
    id = Column(String, primary_key=True)
    chat_id = Column(String, ForeignKey("chats.id", ondelete="CASCADE"), nullable=False, index=True)
    message_id = Column(String, ForeignKey("messages.id", ondelete="SET NULL"))
    user_id = Column(String, nullable=False)
    original_filename = Column(Text, nullable=False)
    source_url = Column(Text)
    file_type = Column(String, nullable=False)
    file_size = Column(BigInteger)
    storage_key = Column(Text)
    raw_text = Column(Text)
    status = Column(String, nullable=False)
    chunk_count = Column(Integer, nullable=False, default=0)
    error_message = Column(Text)
    created_at = Column(TIMESTAMP(timezone=True), nullable=False)
    processed_at = Column(TIMESTAMP(timezone=True))


class ProcessingJob(Base):
    __tablename__ = "processing_jobs"
    id = Column(String, primary_key=True)
    document_id = Column(String, ForeignKey("documents.id", ondelete="CASCADE"), nullable=False, unique=True)
    status = Column(String, nullable=False)
    progress = Column(Integer, nullable=False, default=0)
    error_message = Column(Text)
    created_at = Column(TIMESTAMP(timezone=True), nullable=False)
    updated_at = Column(TIMESTAMP(timezone=True), nullable=False)


class DocumentChunk(Base):
    __tablename__ = "document_chunks"
    id = Column(String, primary_key=True)  # doubles as the vector id
    document_id = Column(String, ForeignKey("documents.id", ondelete="CASCADE"), nullable=False, index=True)
    chunk_index = Column(Integer, nullable=False)
    content = Column(Text, nullable=False)
    metadata_json = Column("metadata", Text)


class ChunkVector(Base):
    __tablename__ = "chunk_vectors"
    id = Column(String, primary_key=True)
    embedding = Column(Vector(EMBED_DIM), nullable=False)
    document_id = Column(String, nullable=False, index=True)
    chat_id = Column(String, nullable=False, index=True)
    user_id = Column(String, nullable=False, index=True)
    chunk_index = Column(Integer, nullable=False)
    section = Column(Text, nullable=False, default="")
    page = Column(Integer, nullable=False, default=0)


# Tables that live in the relational store (everything except the vector index)
RELATIONAL_TABLES = [
    ChatSession.__table__,
    Message.__table__,
    Document.__table__,
    ProcessingJob.__table__,
    DocumentChunk.__table__,
]
