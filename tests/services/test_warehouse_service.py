"""Tests for WarehouseService directory operations."""

from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from fuel_kernel.exceptions import (
    InvalidFieldValueError,
    SupplyBaseNotFoundError,
    WarehouseNotFoundError,
)
from fuel_kernel.models.warehouse import Warehouse


class TestCreateWarehouse:
    def test_zero_position_per_product(self, warehouse_service, test_actor_id):
        snapshot = warehouse_service.create_warehouse("North apron", test_actor_id)

        assert snapshot.name == "North apron"
        assert [p.product for p in snapshot.positions] == ["kerosene", "pvkj"]
        for position in snapshot.positions:
            assert position.balance == Decimal("0")
            assert position.average_cost == Decimal("0")
            assert position.entry_count == 0
        assert not snapshot.is_deleted

    def test_linked_bases(self, warehouse_service, supply_base_id, test_actor_id):
        snapshot = warehouse_service.create_warehouse(
            "South apron", test_actor_id, base_ids=[supply_base_id, supply_base_id]
        )
        assert snapshot.base_ids == (supply_base_id,)

    def test_unknown_base_rejected_before_write(self, warehouse_service, session, test_actor_id):
        missing = uuid4()
        with pytest.raises(SupplyBaseNotFoundError) as exc_info:
            warehouse_service.create_warehouse("Orphan", test_actor_id, base_ids=[missing])

        assert exc_info.value.base_id == str(missing)
        assert session.execute(select(func.count()).select_from(Warehouse)).scalar_one() == 0

    @pytest.mark.parametrize("name", ["", "   "])
    def test_blank_name_rejected(self, warehouse_service, test_actor_id, name):
        with pytest.raises(InvalidFieldValueError):
            warehouse_service.create_warehouse(name, test_actor_id)

    def test_creation_is_logged(self, warehouse_service, test_actor_id, captured_logs):
        snapshot = warehouse_service.create_warehouse("Logged", test_actor_id)
        records = [r for r in captured_logs() if r["message"] == "warehouse_created"]
        assert records[0]["warehouse_id"] == str(snapshot.warehouse_id)
        assert records[0]["warehouse_name"] == "Logged"


class TestLinkBase:
    def test_link_is_idempotent(self, warehouse_service, warehouse_id, supply_base_id):
        warehouse_service.link_base(warehouse_id, supply_base_id)
        snapshot = warehouse_service.link_base(warehouse_id, supply_base_id)
        assert snapshot.base_ids == (supply_base_id,)

    def test_unknown_warehouse(self, warehouse_service, supply_base_id):
        with pytest.raises(WarehouseNotFoundError):
            warehouse_service.link_base(uuid4(), supply_base_id)

    def test_unknown_base(self, warehouse_service, warehouse_id):
        with pytest.raises(SupplyBaseNotFoundError):
            warehouse_service.link_base(warehouse_id, uuid4())


class TestSoftDelete:
    def test_history_stays_readable(
        self, warehouse_service, warehouse_id, receive, ledger_selector, test_actor_id,
        deterministic_clock,
    ):
        receive(warehouse_id, 100, 10)
        deleted = warehouse_service.soft_delete_warehouse(warehouse_id, test_actor_id)

        assert deleted.deleted_at == deterministic_clock.now()
        with pytest.raises(WarehouseNotFoundError):
            ledger_selector.get_warehouse_snapshot(warehouse_id)

        snapshot = ledger_selector.get_warehouse_snapshot(warehouse_id, include_deleted=True)
        assert snapshot.is_deleted
        assert snapshot.position("kerosene").balance == Decimal("100")
        assert ledger_selector.list_entries(warehouse_id).total == 1

    def test_delete_twice(self, warehouse_service, warehouse_id, test_actor_id):
        warehouse_service.soft_delete_warehouse(warehouse_id, test_actor_id)
        with pytest.raises(WarehouseNotFoundError):
            warehouse_service.soft_delete_warehouse(warehouse_id, test_actor_id)
