# Toolrelay - OpenAI-Compatible Tool-Calling Gateway
# Copyright (c) 2026 George Scott Foley
# ORCID: 0009-0006-4957-0540
# Email: Georgescottfoley@proton.me
# Licensed under the MIT License - see LICENSE file for details

"""
SQLAlchemy audit store.

Supports:
- PostgreSQL via asyncpg
- SQLite via aiosqlite

Tables are created from ORM metadata on initialize(). Rows are only
ever inserted, one short transaction per record.
"""

import dataclasses
import logging
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import Boolean, DateTime, Integer, Numeric, String, Text, select
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from ..core.async_base import utcnow
from .models import RequestRecord, ResponseRecord, TokenUsageRecord, ToolCallRecord
from .store import AuditStore

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class RequestModel(Base):
    __tablename__ = "requests"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    model: Mapped[str] = mapped_column(String(255), nullable=False)
    messages: Mapped[str] = mapped_column(Text, nullable=False)
    tools: Mapped[str | None] = mapped_column(Text, nullable=True)
    stream: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class ResponseModel(Base):
    __tablename__ = "responses"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    request_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    tool_calls: Mapped[str | None] = mapped_column(Text, nullable=True)
    finish_reason: Mapped[str | None] = mapped_column(String(50), nullable=True)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    response_time_ms: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class TokenUsageModel(Base):
    __tablename__ = "token_usage"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    request_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    model: Mapped[str] = mapped_column(String(255), nullable=False)
    prompt_tokens: Mapped[int] = mapped_column(Integer, default=0)
    completion_tokens: Mapped[int] = mapped_column(Integer, default=0)
    total_tokens: Mapped[int] = mapped_column(Integer, default=0)
    cost: Mapped[Decimal] = mapped_column(Numeric(16, 8), default=Decimal(0))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class ToolCallModel(Base):
    __tablename__ = "tool_calls"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    request_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    tool_id: Mapped[str] = mapped_column(String(255), nullable=False)
    tool_name: Mapped[str] = mapped_column(String(255), nullable=False)
    arguments: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
    result: Mapped[str | None] = mapped_column(Text, nullable=True)
    success: Mapped[bool] = mapped_column(Boolean, default=True)
    execution_time_ms: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


# Record type -> ORM model
_MODELS: dict[type, type[Base]] = {
    RequestRecord: RequestModel,
    ResponseRecord: ResponseModel,
    TokenUsageRecord: TokenUsageModel,
    ToolCallRecord: ToolCallModel,
}


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def _to_record(record_cls: type, row: Base) -> Any:
    values = {f.name: getattr(row, f.name) for f in dataclasses.fields(record_cls)}
    created_at = values.get("created_at")
    # SQLite drops the zone
    if isinstance(created_at, datetime) and created_at.tzinfo is None:
        values["created_at"] = created_at.replace(tzinfo=UTC)
    return record_cls(**values)


class SQLAlchemyAuditStore(AuditStore):
    """
    Audit store on an async SQLAlchemy engine.

    Usage:
        store = SQLAlchemyAuditStore("sqlite+aiosqlite:///./toolrelay.db")
        await store.initialize()
        await store.add_request(record)
    """

    def __init__(self, url: str, echo: bool = False):
        self.url = url
        self.echo = echo
        self._engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None

    async def initialize(self) -> None:
        """Create the engine and the tables."""
        engine_kwargs: dict = {}
        if _is_sqlite(self.url):
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            logger.info(f"Initializing SQLite audit store: {self.url}")
        else:
            engine_kwargs["pool_pre_ping"] = True
            logger.info("Initializing SQL audit store")

        self._engine = create_async_engine(self.url, echo=self.echo, **engine_kwargs)
        self._session_factory = async_sessionmaker(
            self._engine, class_=AsyncSession, expire_on_commit=False
        )

        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Audit tables ready")

    async def close(self) -> None:
        """Dispose the engine and release all connections."""
        if self._engine is not None:
            await self._engine.dispose()
            logger.info("Audit store connections closed")
        self._engine = None
        self._session_factory = None

    def _sessions(self) -> async_sessionmaker[AsyncSession]:
        if self._session_factory is None:
            raise RuntimeError("Audit store not initialized. Call initialize() first.")
        return self._session_factory

    async def _insert(self, record: Any) -> Any:
        model_cls = _MODELS[type(record)]
        values = dataclasses.asdict(record)
        if values.get("id") is None and model_cls in (TokenUsageModel, ToolCallModel):
            values.pop("id", None)
        row = model_cls(**values)

        async with self._sessions()() as session:
            session.add(row)
            await session.commit()
            return _to_record(type(record), row)

    async def _find(self, record_cls: type, where: dict[str, Any]) -> list[Any]:
        model_cls = _MODELS[record_cls]
        stmt = select(model_cls)
        for key, value in where.items():
            if key == "created_after":
                stmt = stmt.where(model_cls.created_at >= value)
            elif key == "created_before":
                stmt = stmt.where(model_cls.created_at <= value)
            else:
                stmt = stmt.where(getattr(model_cls, key) == value)
        stmt = stmt.order_by(model_cls.created_at)

        async with self._sessions()() as session:
            rows = (await session.execute(stmt)).scalars().all()
            return [_to_record(record_cls, row) for row in rows]

    async def add_request(self, record: RequestRecord) -> RequestRecord:
        return await self._insert(record)

    async def add_response(self, record: ResponseRecord) -> ResponseRecord:
        return await self._insert(record)

    async def add_token_usage(self, record: TokenUsageRecord) -> TokenUsageRecord:
        return await self._insert(record)

    async def add_tool_call(self, record: ToolCallRecord) -> ToolCallRecord:
        return await self._insert(record)

    async def find_requests(self, **where: Any) -> list[RequestRecord]:
        return await self._find(RequestRecord, where)

    async def find_responses(self, **where: Any) -> list[ResponseRecord]:
        return await self._find(ResponseRecord, where)

    async def find_token_usage(self, **where: Any) -> list[TokenUsageRecord]:
        return await self._find(TokenUsageRecord, where)

    async def find_tool_calls(self, **where: Any) -> list[ToolCallRecord]:
        return await self._find(ToolCallRecord, where)


__all__ = [
    "Base",
    "RequestModel",
    "ResponseModel",
    "TokenUsageModel",
    "ToolCallModel",
    "SQLAlchemyAuditStore",
]
