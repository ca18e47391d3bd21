"""
Audit Persistence Tests
=======================

Pricing, both audit stores (in-memory and SQLAlchemy on aiosqlite), and
the best-effort AuditRecorder.
"""

from datetime import timedelta
from decimal import Decimal

import pytest

from toolrelay.core.async_base import utcnow
from toolrelay.core.async_orchestrator import ToolCallLoop
from toolrelay.core.conversation import ConversationState
from toolrelay.core.pricing import MODEL_PRICING, calculate_cost, get_model_pricing
from toolrelay.data.models import RequestRecord, ResponseRecord, TokenUsageRecord, ToolCallRecord
from toolrelay.data.sql import SQLAlchemyAuditStore
from toolrelay.data.store import InMemoryAuditStore, create_audit_store
from toolrelay.services.audit import AuditRecorder
from toolrelay_core import ModelAuthError

from conftest import FakeModelProvider, FakeToolProvider, completion, result, tool_call

# ---------------------------------------------------------------------------
# Pricing
# ---------------------------------------------------------------------------


class TestPricing:
    def test_known_model(self):
        # 1000 * 0.00003 + 500 * 0.00006
        assert calculate_cost("gpt-4", 1000, 500) == Decimal("0.06")

    def test_unknown_model_uses_default(self):
        assert get_model_pricing("vendor/unknown") == MODEL_PRICING["gpt-3.5-turbo"]

    def test_zero_tokens_cost_nothing(self):
        assert calculate_cost("gpt-4", 0, 0) == 0


# ---------------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------------


async def exercise_store(store):
    await store.add_request(RequestRecord(id="r1", model="m", messages="[]", user_id="u"))
    await store.add_request(RequestRecord(id="r2", model="m", messages="[]"))
    await store.add_response(
        ResponseRecord(id="resp1", request_id="r1", content="{}", response_time_ms=5)
    )
    usage = await store.add_token_usage(
        TokenUsageRecord(
            request_id="r1",
            model="m",
            prompt_tokens=10,
            completion_tokens=5,
            total_tokens=15,
            cost=Decimal("0.00002"),
        )
    )
    call = await store.add_tool_call(
        ToolCallRecord(
            request_id="r1",
            tool_id="a",
            tool_name="lookup",
            arguments="{}",
            success=True,
            execution_time_ms=3,
            result="42",
        )
    )
    return usage, call


class TestInMemoryAuditStore:
    @pytest.mark.asyncio
    async def test_writes_and_filters(self):
        store = InMemoryAuditStore()
        usage, call = await exercise_store(store)

        assert usage.id == 1
        assert call.id == 1
        assert [r.id for r in await store.find_requests(user_id="u")] == ["r1"]
        assert await store.get_request("r2") is not None
        assert (await store.get_response("resp1")).request_id == "r1"
        assert store.count() == {"requests": 2, "responses": 1, "token_usage": 1, "tool_calls": 1}
        assert len(store.records_for("r1")) == 4

    @pytest.mark.asyncio
    async def test_time_range(self):
        store = InMemoryAuditStore()
        await exercise_store(store)
        future = utcnow() + timedelta(hours=1)
        assert await store.find_requests(created_after=future) == []
        assert len(await store.find_requests(created_before=future)) == 2

    def test_factory(self):
        assert isinstance(create_audit_store("memory://"), InMemoryAuditStore)
        assert isinstance(create_audit_store("sqlite+aiosqlite:///x.db"), SQLAlchemyAuditStore)


class TestSQLAlchemyAuditStore:
    @pytest.mark.asyncio
    async def test_round_trip_on_sqlite(self, tmp_path):
        store = SQLAlchemyAuditStore(f"sqlite+aiosqlite:///{tmp_path / 'audit.db'}")
        await store.initialize()
        try:
            usage, call = await exercise_store(store)

            assert usage.id is not None
            assert call.id is not None
            requests = await store.find_requests(user_id="u")
            assert [r.id for r in requests] == ["r1"]
            assert requests[0].created_at.tzinfo is not None

            stored_usage = await store.find_token_usage(request_id="r1")
            assert stored_usage[0].total_tokens == 15
            assert stored_usage[0].cost == Decimal("0.00002")

            calls = await store.find_tool_calls(request_id="r1")
            assert calls[0].tool_name == "lookup"
            assert calls[0].success is True
        finally:
            await store.close()

    @pytest.mark.asyncio
    async def test_uninitialized_store_fails(self):
        store = SQLAlchemyAuditStore("sqlite+aiosqlite:///:memory:")
        with pytest.raises(RuntimeError):
            await store.add_request(RequestRecord(id="r", model="m", messages="[]"))


# ---------------------------------------------------------------------------
# Recorder
# ---------------------------------------------------------------------------


class BrokenStore(InMemoryAuditStore):
    async def add_request(self, record):
        raise ConnectionError("database is down")

    async def add_response(self, record):
        raise ConnectionError("database is down")


class TestAuditRecorder:
    @pytest.mark.asyncio
    async def test_success_writes_response_and_usage(self, metrics):
        store = InMemoryAuditStore()
        recorder = AuditRecorder(store, metrics)
        model = FakeModelProvider(
            [completion(tool_calls=[tool_call("a", "lookup")]), completion("done")]
        )
        tools = FakeToolProvider(results=[[result("a", "42")]])
        loop_result = await ToolCallLoop(model, tools).run_to_completion(
            ConversationState.from_wire([{"role": "user", "content": "q"}]), "gpt-4"
        )

        await recorder.record_request("r1", "gpt-4", [{"role": "user", "content": "q"}])
        await recorder.record_tool_calls(
            "r1", [tool_call("a", "lookup")], [result("a", "42")], duration_ms=7
        )
        await recorder.record_success("r1", "gpt-4", loop_result, {"id": "r1"}, 20)

        responses = await store.find_responses(request_id="r1")
        assert responses[0].finish_reason == "stop"
        assert responses[0].tool_calls == '["lookup"]'
        usage = await store.find_token_usage(request_id="r1")
        assert usage[0].total_tokens == 30
        assert usage[0].cost == calculate_cost("gpt-4", 20, 10)
        calls = await store.find_tool_calls(request_id="r1")
        assert calls[0].execution_time_ms == 7
        assert calls[0].result == "42"
        assert metrics.registry.get_sample_value(
            "toolrelay_tokens_total", {"model": "gpt-4", "direction": "prompt"}
        ) == 20

    @pytest.mark.asyncio
    async def test_failure_record(self):
        store = InMemoryAuditStore()
        recorder = AuditRecorder(store)

        await recorder.record_failure("r1", ModelAuthError("bad key"), 4)

        responses = await store.find_responses(request_id="r1")
        assert responses[0].finish_reason == "error"
        assert responses[0].content == '{"error": "bad key"}'
        assert "ModelAuthError" in responses[0].error
        assert await store.find_token_usage(request_id="r1") == []

    @pytest.mark.asyncio
    async def test_store_failures_are_swallowed(self):
        recorder = AuditRecorder(BrokenStore())
        assert await recorder.record_request("r1", "m", []) is None
        assert await recorder.record_failure("r1", RuntimeError("x"), 1) is None
