"""Tests for single and bulk status mutations."""

import pytest

from orderdesk.config import (
    DEFAULT_BULK_ATTEMPTS,
    DEFAULT_CSV_BULK_ATTEMPTS,
    EndpointConfig,
    MutationAttempt,
)
from orderdesk.exceptions import BulkMutationError, StatusUpdateError, ValidationError
from orderdesk.models import BulkRow
from orderdesk.mutations import (
    BulkMutationCoordinator,
    group_by_status,
    parse_csv_ids,
    parse_order_id,
    parse_status,
)

ADMIN_BULK = "/api/admin/orders/bulk-update"


@pytest.fixture
def coordinator(transport, endpoints):
    return BulkMutationCoordinator(transport, endpoints)


def _accept_all(transport, method="POST", path=ADMIN_BULK):
    transport.add(method, path, body={"success": True})


class TestParsing:
    """Test input validation helpers."""

    def test_parse_status(self):
        assert parse_status("shipped") == "Shipped"
        assert parse_status(" CANCELLED ") == "Cancelled"

    @pytest.mark.parametrize("value", ["bogus", "", None])
    def test_parse_status_rejects_unknown(self, value):
        with pytest.raises(ValidationError):
            parse_status(value)

    @pytest.mark.parametrize(
        "value,expected",
        [(7, 7), ("12", 12), (" 3 ", 3), ("0", None), (0, None), ("-3", None),
         ("abc", None), ("²", None), ("1²", None), (True, None), (None, None)],
    )
    def test_parse_order_id(self, value, expected):
        assert parse_order_id(value) == expected

    def test_group_by_status(self):
        rows = [
            {"id": 3, "targetStatus": "Shipped"},
            {"id": "4", "targetStatus": "shipped"},
            BulkRow(id=9, target_status="Cancelled"),
            {"id": "x", "targetStatus": "Shipped"},
            {"id": 3, "target_status": "Shipped"},
        ]
        groups = group_by_status(rows)
        assert list(groups) == ["Shipped", "Cancelled"]
        assert groups == {"Shipped": [3, 4], "Cancelled": [9]}

    def test_group_by_status_rejects_unknown_status(self):
        with pytest.raises(ValidationError):
            group_by_status([{"id": 1, "status": "Lost"}])

    def test_parse_csv_ids(self):
        text = "\ufeffid,name\n12,foo\n\n 13 ,bar\n\"14\",x\nabc,1\n"
        assert parse_csv_ids(text) == [12, 13, 14]

    def test_parse_csv_ids_skips_non_ascii_digits(self):
        assert parse_csv_ids("12,a\n²,b\n١٣,c\n") == [12]


class TestBulkUpdate:
    """Test the ordered attempt walk and non-atomic grouping."""

    @pytest.mark.asyncio
    async def test_attempt_order_when_all_fail(self, transport, coordinator):
        with pytest.raises(BulkMutationError) as exc_info:
            await coordinator.bulk_update([{"id": 3, "targetStatus": "Shipped"}])

        assert [(m, u) for m, u, _ in transport.calls] == [
            (a.method, a.path) for a in DEFAULT_BULK_ATTEMPTS
        ]
        assert [list(body) for _, _, body in transport.calls] == [
            [a.body_key, "status"] for a in DEFAULT_BULK_ATTEMPTS
        ]
        assert exc_info.value.attempts == 6
        assert exc_info.value.committed == []

    @pytest.mark.asyncio
    async def test_stops_at_first_success(self, transport, coordinator):
        _accept_all(transport, "PUT")

        result = await coordinator.bulk_update([BulkRow(3, "Shipped"), BulkRow(4, "Shipped")])

        assert len(transport.calls) == 2
        assert transport.calls[-1] == ("PUT", ADMIN_BULK, {"ids": [3, 4], "status": "Shipped"})
        group = result.groups[0]
        assert (group.method, group.path, group.body_key) == ("PUT", ADMIN_BULK, "ids")

    @pytest.mark.asyncio
    async def test_order_ids_body_key(self, transport, coordinator):
        transport.add(
            "POST",
            ADMIN_BULK,
            handler=lambda body: (200, {}) if "orderIds" in body else (400, None),
        )
        result = await coordinator.bulk_update([BulkRow(3, "Pending")])
        assert result.groups[0].body_key == "orderIds"
        # POST ids, PUT ids (unrouted), POST orderIds
        assert len(transport.calls) == 3

    @pytest.mark.asyncio
    async def test_groups_sent_independently(self, transport, coordinator):
        _accept_all(transport)
        rows = [
            {"id": 3, "targetStatus": "Shipped"},
            {"id": 9, "targetStatus": "Cancelled"},
            {"id": 4, "targetStatus": "Shipped"},
        ]

        result = await coordinator.bulk_update(rows)

        assert [body for _, _, body in transport.calls] == [
            {"ids": [3, 4], "status": "Shipped"},
            {"ids": [9], "status": "Cancelled"},
        ]
        assert [g.status for g in result.groups] == ["Shipped", "Cancelled"]
        assert result.updated_ids == [3, 4, 9]

    @pytest.mark.asyncio
    async def test_partial_failure_is_not_rolled_back(self, transport, coordinator):
        def only_shipped(body):
            return (200, {"success": True}) if body["status"] == "Shipped" else (500, None)

        for attempt in DEFAULT_BULK_ATTEMPTS:
            transport.add(attempt.method, attempt.path, handler=only_shipped)
        rows = [
            {"id": 3, "targetStatus": "Shipped"},
            {"id": 4, "targetStatus": "Shipped"},
            {"id": 9, "targetStatus": "Cancelled"},
        ]

        with pytest.raises(BulkMutationError) as exc_info:
            await coordinator.bulk_update(rows)

        error = exc_info.value
        assert error.status == "Cancelled"
        assert error.ids == [9]
        assert [(g.status, g.ids) for g in error.committed] == [("Shipped", (3, 4))]
        assert error.details["committed_statuses"] == ["Shipped"]
        # one accepted Shipped request, then every combination for Cancelled
        assert len(transport.calls) == 1 + len(DEFAULT_BULK_ATTEMPTS)

    @pytest.mark.asyncio
    async def test_no_valid_ids(self, transport, coordinator):
        with pytest.raises(ValidationError, match="No valid numeric IDs"):
            await coordinator.bulk_update([{"id": "abc", "targetStatus": "Shipped"}])
        assert transport.calls == []

    @pytest.mark.asyncio
    async def test_invalid_status_sends_nothing(self, transport, coordinator):
        with pytest.raises(ValidationError):
            await coordinator.bulk_update(
                [{"id": 1, "targetStatus": "Shipped"}, {"id": 2, "targetStatus": "Lost"}]
            )
        assert transport.calls == []

    @pytest.mark.asyncio
    async def test_custom_attempt_list(self, transport):
        endpoints = EndpointConfig(
            bulk_attempts=[MutationAttempt("patch", "/v2/orders/status", "order_ids")]
        )
        transport.add("PATCH", "/v2/orders/status", body={})
        coordinator = BulkMutationCoordinator(transport, endpoints)
        result = await coordinator.bulk_update([BulkRow(1, "Delivered")])
        assert transport.calls == [
            ("PATCH", "/v2/orders/status", {"order_ids": [1], "status": "Delivered"})
        ]
        assert result.updated_ids == [1]


class TestCsvUpdate:
    """Test CSV-driven bulk updates."""

    @pytest.mark.asyncio
    async def test_csv_uses_admin_attempts_only(self, transport, coordinator):
        with pytest.raises(BulkMutationError) as exc_info:
            await coordinator.bulk_update_from_csv("1\n2\n", "Shipped")
        assert exc_info.value.attempts == 4
        assert [(m, u) for m, u, _ in transport.calls] == [
            (a.method, a.path) for a in DEFAULT_CSV_BULK_ATTEMPTS
        ]

    @pytest.mark.asyncio
    async def test_csv_dedups_ids(self, transport, coordinator):
        _accept_all(transport)
        result = await coordinator.bulk_update_from_csv("id\n5\n6\n5\n", "delivered")
        assert transport.calls == [("POST", ADMIN_BULK, {"ids": [5, 6], "status": "Delivered"})]
        assert result.updated_ids == [5, 6]

    @pytest.mark.asyncio
    async def test_csv_without_ids(self, transport, coordinator):
        with pytest.raises(ValidationError, match="No numeric IDs"):
            await coordinator.bulk_update_from_csv("id,name\n", "Shipped")
        assert transport.calls == []


class TestUpdateStatus:
    """Test single-order status updates."""

    @pytest.mark.asyncio
    async def test_patch_all_paths_then_put(self, transport, coordinator):
        with pytest.raises(StatusUpdateError) as exc_info:
            await coordinator.update_status(12, "Confirmed")

        assert [(m, u) for m, u, _ in transport.calls] == [
            ("PATCH", "/api/admin/orders/12"),
            ("PATCH", "/api/orders/12"),
            ("PATCH", "/orders/12"),
            ("PUT", "/api/admin/orders/12"),
            ("PUT", "/api/orders/12"),
            ("PUT", "/orders/12"),
        ]
        assert all(body == {"status": "Confirmed"} for _, _, body in transport.calls)
        assert exc_info.value.attempts == 6

    @pytest.mark.asyncio
    async def test_stops_at_first_success(self, transport, coordinator):
        transport.add("PUT", "/api/orders/12", body={"id": 12, "status": "Shipped"})
        response = await coordinator.update_status("12", "shipped")
        assert response.body["status"] == "Shipped"
        assert len(transport.calls) == 5

    @pytest.mark.asyncio
    async def test_invalid_status(self, transport, coordinator):
        with pytest.raises(ValidationError):
            await coordinator.update_status(12, "Teleported")
        assert transport.calls == []
