"""
Unit tests for JSON serialization and tracer composition.
"""

from datetime import UTC, datetime
from decimal import Decimal
from uuid import UUID

import pytest

from ragestate.checkout.session import LastOrder
from ragestate.events.feed import PostLiked
from ragestate.observability import MockTracer, NullTracer, OpenTelemetryTracer, create_tracer
from ragestate.serialization import json_dumps, json_loads
from ragestate.stores.in_memory import InMemoryEventLogStore


class TestJsonDumps:
    def test_special_types(self):
        payload = {
            "id": UUID("12345678-1234-5678-1234-567812345678"),
            "at": datetime(2025, 1, 1, tzinfo=UTC),
            "total": Decimal("26.88"),
        }
        assert json_loads(json_dumps(payload)) == {
            "id": "12345678-1234-5678-1234-567812345678",
            "at": "2025-01-01T00:00:00+00:00",
            "total": "26.88",
        }

    def test_pydantic_model(self):
        """Models serialize through their JSON-mode dump."""
        order = LastOrder(payment_intent_id="pi_1", total=Decimal("10.50"), item_count=2)
        data = json_loads(json_dumps(order))
        assert data["total"] == "10.50"
        assert data["item_count"] == 2

    def test_unsupported_type_raises(self):
        with pytest.raises(TypeError):
            json_dumps({"x": object()})


class TestTracerComposition:
    def test_create_tracer(self):
        assert isinstance(create_tracer(__name__, True), OpenTelemetryTracer)
        assert isinstance(create_tracer(__name__, False), NullTracer)
        assert not create_tracer(__name__, False).enabled

    @pytest.mark.asyncio
    async def test_store_spans(self):
        """Components use an injected tracer instead of creating one."""
        tracer = MockTracer()
        store = InMemoryEventLogStore(tracer=tracer)

        await store.append(PostLiked(post_id="p1", user_id="alice"))
        await store.read_stream("posts/p1/likes")

        assert tracer.span_names == ["ragestate.event_log.append", "ragestate.event_log.read_stream"]
        _, attributes = tracer.spans[0]
        assert attributes["ragestate.stream.id"] == "posts/p1/likes"
