"""Tests for the order-desk session controller."""

import asyncio

import pytest

from orderdesk.exceptions import BulkMutationError, ValidationError
from orderdesk.pagination import PageQuery, build_search_params
from orderdesk.resolver import build_url
from orderdesk.session import GenerationCounter, OrderDeskSession

LIST = "/api/admin/orders"
BULK = "/api/admin/orders/bulk-update"
STATS = "/api/admin/orders/stats"


@pytest.fixture
def session(transport, client_config):
    return OrderDeskSession(transport, config=client_config, backfill_items=False)


def _list_url(query, endpoints):
    return build_url(LIST, build_search_params(query, endpoints))


def _order(order_id, **fields):
    return {"id": order_id, "status": "Pending", "userName": "Ann", "itemsCount": 1, **fields}


class TestGenerationCounter:
    """Test per-sequence generation tags."""

    def test_sequences_are_independent(self):
        counter = GenerationCounter()
        assert counter.next("browse") == 1
        assert counter.next("browse") == 2
        assert counter.next("update") == 1
        assert counter.is_current("browse", 2)
        assert not counter.is_current("browse", 1)
        assert counter.current("stats") == 0


class TestLoad:
    """Test the read path and stale-result handling."""

    @pytest.mark.asyncio
    async def test_load_applies_state(self, transport, session):
        transport.add("GET", LIST, body={"data": [_order(1), _order(2)], "total": 2})

        state = await session.load("browse", PageQuery())

        assert [o.id for o in state.orders] == [1, 2]
        assert state.meta.has_more is False
        assert state.generation == 1
        assert state.loaded

    @pytest.mark.asyncio
    async def test_stale_result_discarded(self, transport, session, endpoints):
        old, new = PageQuery(search="old"), PageQuery(search="new")
        gate = asyncio.Event()
        transport.add("GET", _list_url(old, endpoints), body=[_order(1)], gate=gate)
        transport.add("GET", _list_url(new, endpoints), body=[_order(2)])

        slow = asyncio.ensure_future(session.load("browse", old))
        await asyncio.sleep(0)
        fresh = await session.load("browse", new)
        gate.set()
        stale = await slow

        assert stale is None
        assert fresh is session.views["browse"]
        assert [o.id for o in session.views["browse"].orders] == [2]
        assert session.views["browse"].query == new

    @pytest.mark.asyncio
    async def test_start_load_cancels_previous(self, transport, session, endpoints):
        old, new = PageQuery(search="old"), PageQuery(search="new")
        transport.add("GET", _list_url(old, endpoints), body=[_order(1)], gate=asyncio.Event())
        transport.add("GET", _list_url(new, endpoints), body=[_order(2)])

        first = session.start_load("browse", old)
        await asyncio.sleep(0)
        second = session.start_load("browse", new)
        await second

        with pytest.raises(asyncio.CancelledError):
            await first
        assert first.cancelled()
        assert [o.id for o in session.views["browse"].orders] == [2]

    @pytest.mark.asyncio
    async def test_views_are_independent(self, transport, session):
        transport.add("GET", "/api/admin/orders", body=[_order(1)])
        await session.load("browse")
        await session.load("update")
        assert session.generations.current("browse") == 1
        assert session.generations.current("update") == 1

    @pytest.mark.asyncio
    async def test_unknown_view(self, session):
        with pytest.raises(ValidationError):
            await session.load("archive")

    @pytest.mark.asyncio
    async def test_load_enriches_names(self, transport, session):
        transport.add("GET", LIST, body=[{"id": 1, "userId": 5, "itemsCount": 1}])
        transport.add("GET", "/api/admin/users/5", body={"name": "Ann"})

        state = await session.load("browse")

        assert state.orders[0].user_name == "Ann"

    @pytest.mark.asyncio
    async def test_load_backfills_items(self, transport, client_config):
        transport.add("GET", LIST, body=[{"id": 3, "userName": "Ann"}])
        transport.add("GET", "/api/admin/orders/3", body={"items": [{}, {}, {}]})
        session = OrderDeskSession(transport, config=client_config)

        state = await session.load("browse")

        assert state.orders[0].items_count == 3

    @pytest.mark.asyncio
    async def test_unreachable_backend_empty_state(self, transport, session):
        state = await session.load("browse")
        assert state.orders == []
        assert state.meta.has_more is False


class TestStats:
    """Test dashboard stats loading."""

    @pytest.mark.asyncio
    async def test_load_stats(self, transport, session):
        transport.add(
            "GET", STATS, body={"data": {"totalOrders": 10, "pending": 3, "totalSales": "99.5"}}
        )
        stats = await session.load_stats()
        assert stats.total_orders == 10
        assert stats.pending_orders == 3
        assert stats.total_sales == 99.5
        assert stats.shipped_orders == 0

    @pytest.mark.asyncio
    async def test_period_params_remembered(self, transport, session):
        transport.add("GET", STATS, body={"total": 4})
        await session.load_stats("monthly", "2026-10")
        await session.load_stats()
        assert transport.urls() == [f"{STATS}?month=2026-10"] * 2

    @pytest.mark.asyncio
    async def test_unavailable_stats_are_zero(self, transport, session):
        stats = await session.load_stats()
        assert stats.total_orders == 0
        assert len(transport.calls) == 3


class TestMutationsRefresh:
    """Test that writes re-fetch every loaded sequence."""

    @pytest.mark.asyncio
    async def test_bulk_update_refreshes_views(self, transport, session):
        server = {"status": "Pending"}

        def list_orders(_body):
            return 200, {"data": [_order(3, status=server["status"])], "total": 1}

        def bulk(body):
            server["status"] = body["status"]
            return 200, {"success": True}

        transport.add("GET", LIST, handler=list_orders)
        transport.add("POST", BULK, handler=bulk)
        await session.load("browse")

        result = await session.bulk_update([{"id": 3, "targetStatus": "Shipped"}])

        assert result.updated_ids == [3]
        assert session.views["browse"].orders[0].status == "Shipped"
        assert session.views["browse"].generation == 2
        assert transport.count(STATS) == 1
        # the update view was never loaded, so it is not fetched
        assert session.views["update"].generation == 0

    @pytest.mark.asyncio
    async def test_partial_bulk_failure_still_refreshes(self, transport, session):
        transport.add("GET", LIST, body=[_order(3)])
        transport.add(
            "POST",
            BULK,
            handler=lambda body: (200, {}) if body["status"] == "Shipped" else (500, None),
        )
        await session.load("browse")

        with pytest.raises(BulkMutationError) as exc_info:
            await session.bulk_update(
                [{"id": 3, "targetStatus": "Shipped"}, {"id": 9, "targetStatus": "Cancelled"}]
            )

        assert [g.status for g in exc_info.value.committed] == ["Shipped"]
        assert session.views["browse"].generation == 2

    @pytest.mark.asyncio
    async def test_total_bulk_failure_skips_refresh(self, transport, session):
        transport.add("GET", LIST, body=[_order(3)])
        await session.load("browse")

        with pytest.raises(BulkMutationError):
            await session.bulk_update([{"id": 3, "targetStatus": "Shipped"}])

        assert session.views["browse"].generation == 1
        assert transport.count(STATS) == 0

    @pytest.mark.asyncio
    async def test_update_status_refreshes(self, transport, session):
        transport.add("GET", LIST, body=[_order(12)])
        transport.add("PATCH", "/api/admin/orders/12", body={"id": 12, "status": "Confirmed"})
        await session.load("update")

        response = await session.update_status(12, "Confirmed")

        assert response.ok
        assert session.views["update"].generation == 2

    @pytest.mark.asyncio
    async def test_csv_update_refreshes(self, transport, session):
        transport.add("POST", BULK, body={})
        result = await session.bulk_update_from_csv("7\n8\n", "Delivered")
        assert result.updated_ids == [7, 8]
        assert transport.count(STATS) == 1


class TestViewOrder:
    """Test order detail lookups."""

    @pytest.mark.asyncio
    async def test_detail_endpoint(self, transport, session):
        transport.add(
            "GET",
            "/api/admin/orders/3",
            body={"id": 3, "status": "Shipped", "items": [{"name": "Pen", "quantity": 2}]},
        )
        detail = await session.view_order(3)
        assert detail.order.id == 3
        assert detail.order.items_count == 1
        assert detail.items == [{"name": "Pen", "quantity": 2}]

    @pytest.mark.asyncio
    async def test_falls_back_to_list_filtered_by_id(self, transport, session):
        transport.add(
            "GET",
            LIST,
            body={"data": [{"id": 3, "order_items": [{"name": "A"}, {"name": "B"}]}]},
        )
        detail = await session.view_order("3")
        assert [i["name"] for i in detail.items] == ["A", "B"]
        assert transport.urls()[-1] == f"{LIST}?page=1&limit=1&orderId=3"

    @pytest.mark.asyncio
    async def test_list_fallback_matches_id_aliases(self, transport, session):
        transport.add(
            "GET",
            LIST,
            body={
                "data": [
                    {"order_id": 2, "items": [{"name": "Other"}]},
                    {"orderId": "3", "items": [{"name": "Mine"}]},
                ]
            },
        )
        detail = await session.view_order(3)
        assert detail.order.id == 3
        assert [i["name"] for i in detail.items] == ["Mine"]

    @pytest.mark.asyncio
    async def test_updates_held_records(self, transport, session):
        transport.add("GET", LIST, body=[_order(3, itemsCount=0)])
        transport.add("GET", "/api/orders/3", body={"data": {"items": [{"sku": "x"}]}})
        await session.load("browse")

        await session.view_order(session.views["browse"].orders[0])

        assert session.views["browse"].orders[0].items_count == 1

    @pytest.mark.asyncio
    async def test_no_items_found(self, session):
        assert await session.view_order(99) is None
