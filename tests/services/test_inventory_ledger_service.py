"""
Tests for InventoryLedgerService.apply_movement.

Verifies:
- Weighted-average cost over the receipt / receipt / sale scenario
- Entry before/after snapshots and per-position sequence numbers
- Negative balance policy: clamp records a shortfall, reject writes nothing
- Validation happens before any write
- Structured log records
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from fuel_kernel.domain.policy import LedgerPolicy
from fuel_kernel.domain.values import MovementKind, SourceKind, SourceRef
from fuel_kernel.exceptions import (
    InsufficientBalanceError,
    InvalidFieldValueError,
    InvalidMovementError,
    InvalidQuantityError,
    UnknownProductError,
    WarehouseNotFoundError,
)
from fuel_kernel.services.ledger_service import InventoryLedgerService
from fuel_kernel.services.warehouse_service import WarehouseService

KEROSENE = "kerosene"


def _stock(ledger_selector, warehouse_id, product=KEROSENE):
    return ledger_selector.get_stock(warehouse_id, product)


class TestWeightedAverageScenario:
    def test_receipts_then_sale(self, warehouse_id, receive, withdraw, ledger_selector):
        first = receive(warehouse_id, 1000, 50)
        second = receive(warehouse_id, 500, 56)
        sale = withdraw(warehouse_id, 600)

        assert first.balance_after == Decimal("1000")
        assert first.average_cost_after == Decimal("50")
        assert second.balance_before == Decimal("1000")
        assert second.average_cost_after == Decimal("52")
        assert sale.balance_after == Decimal("900")
        assert sale.average_cost_after == Decimal("52")
        assert [first.seq, second.seq, sale.seq] == [1, 2, 3]

        stock = _stock(ledger_selector, warehouse_id)
        assert stock.balance == Decimal("900")
        assert stock.average_cost == Decimal("52")
        assert stock.entry_count == 3

    def test_entry_chain_is_contiguous(self, warehouse_id, receive, withdraw):
        entries = [
            receive(warehouse_id, 100, 10),
            withdraw(warehouse_id, 30),
            receive(warehouse_id, 20, 40),
            withdraw(warehouse_id, 5, kind=MovementKind.CONSUMPTION),
        ]
        for previous, current in zip(entries, entries[1:]):
            assert current.balance_before == previous.balance_after
            assert current.average_cost_before == previous.average_cost_after

    def test_products_are_independent(self, warehouse_id, receive, ledger_selector):
        receive(warehouse_id, 100, 10, product="kerosene")
        entry = receive(warehouse_id, 7, 300, product="pvkj")

        assert entry.seq == 1
        assert _stock(ledger_selector, warehouse_id, "kerosene").balance == Decimal("100")
        assert _stock(ledger_selector, warehouse_id, "pvkj").average_cost == Decimal("300")

    def test_total_sum_recorded_with_derived_price(self, warehouse_id, receive):
        entry = receive(warehouse_id, 4, total_sum=10)
        assert entry.total_sum == Decimal("10")
        assert entry.unit_price == Decimal("2.5")
        assert entry.average_cost_after == Decimal("2.5")

    def test_adjustment_accepts_either_sign(self, warehouse_id, receive, ledger_service, test_actor_id):
        receive(warehouse_id, 100, 10)
        for delta in ("15", "-40"):
            ledger_service.apply_movement(
                warehouse_id=warehouse_id,
                product=KEROSENE,
                kind=MovementKind.ADJUSTMENT,
                quantity_delta=Decimal(delta),
                source_ref=SourceRef(SourceKind.MANUAL, "stocktake"),
                actor_id=test_actor_id,
            )
        entry = ledger_service.apply_movement(
            warehouse_id=warehouse_id,
            product=KEROSENE,
            kind="adjustment",
            quantity_delta="1",
            source_ref=SourceRef(SourceKind.MANUAL, "stocktake"),
            actor_id=test_actor_id,
        )
        assert entry.balance_after == Decimal("76")
        assert entry.average_cost_after == Decimal("10")

    def test_transaction_at_defaults_to_clock(self, warehouse_id, receive, deterministic_clock):
        entry = receive(warehouse_id, 1, 1)
        assert entry.transaction_at == deterministic_clock.now()
        assert entry.created_at == deterministic_clock.now()

    def test_missing_stock_row_created_on_first_use(
        self, session, deterministic_clock, test_actor_id, ledger_service, ledger_selector
    ):
        kerosene_only = WarehouseService(
            session, deterministic_clock, LedgerPolicy(products=("kerosene",))
        )
        warehouse = kerosene_only.create_warehouse("Kerosene only", test_actor_id)
        assert warehouse.position("pvkj") is None

        entry = ledger_service.apply_movement(
            warehouse_id=warehouse.warehouse_id,
            product="pvkj",
            kind=MovementKind.RECEIPT,
            quantity_delta=Decimal("10"),
            unit_price=Decimal("5"),
            source_ref=SourceRef(SourceKind.MOVEMENT, str(uuid4())),
            actor_id=test_actor_id,
        )
        assert entry.seq == 1
        assert _stock(ledger_selector, warehouse.warehouse_id, "pvkj").balance == Decimal("10")


class TestNegativeBalancePolicy:
    def test_clamp_floors_balance_and_records_shortfall(
        self, warehouse_id, receive, withdraw, ledger_selector, captured_logs
    ):
        receive(warehouse_id, 100, 50)
        entry = withdraw(warehouse_id, 150)

        assert entry.balance_after == Decimal("0")
        assert entry.shortfall == Decimal("50")
        assert entry.quantity_delta == Decimal("-150")
        assert entry.effective_delta == Decimal("-100")
        assert entry.average_cost_after == Decimal("50")
        assert _stock(ledger_selector, warehouse_id).balance == Decimal("0")

        warnings = [r for r in captured_logs() if r["message"] == "insufficient_balance_clamped"]
        assert len(warnings) == 1
        assert warnings[0]["level"] == "WARNING"
        assert Decimal(warnings[0]["computed_balance"]) == Decimal("-50")
        assert Decimal(warnings[0]["available"]) == Decimal("100")

    def test_reject_raises_and_writes_nothing(
        self, session, warehouse_id, receive, deterministic_clock, reject_policy,
        test_actor_id, ledger_selector,
    ):
        receive(warehouse_id, 100, 50)
        strict = InventoryLedgerService(session, deterministic_clock, reject_policy)

        with pytest.raises(InsufficientBalanceError) as exc_info:
            strict.apply_movement(
                warehouse_id=warehouse_id,
                product=KEROSENE,
                kind=MovementKind.SALE,
                quantity_delta=Decimal("-150"),
                source_ref=SourceRef(SourceKind.MANUAL, "x"),
                actor_id=test_actor_id,
            )

        assert exc_info.value.available == Decimal("100")
        assert exc_info.value.requested == Decimal("150")
        assert exc_info.value.shortfall == Decimal("50")
        stock = _stock(ledger_selector, warehouse_id)
        assert stock.balance == Decimal("100")
        assert stock.entry_count == 1

    def test_reject_allows_exact_balance(
        self, session, warehouse_id, receive, deterministic_clock, reject_policy, test_actor_id
    ):
        receive(warehouse_id, 100, 50)
        strict = InventoryLedgerService(session, deterministic_clock, reject_policy)
        entry = strict.apply_movement(
            warehouse_id=warehouse_id,
            product=KEROSENE,
            kind=MovementKind.CONSUMPTION,
            quantity_delta=Decimal("-100"),
            source_ref=SourceRef(SourceKind.MANUAL, "x"),
            actor_id=test_actor_id,
        )
        assert entry.balance_after == Decimal("0")
        assert entry.shortfall == Decimal("0")


class TestValidation:
    @pytest.mark.parametrize(
        "kind, delta",
        [
            (MovementKind.RECEIPT, "-1"),
            (MovementKind.TRANSFER_IN, "-1"),
            (MovementKind.SALE, "1"),
            (MovementKind.TRANSFER_OUT, "1"),
            (MovementKind.CONSUMPTION, "1"),
            (MovementKind.ADJUSTMENT, "0"),
        ],
    )
    def test_sign_must_match_kind(self, warehouse_id, ledger_service, test_actor_id, ledger_selector, kind, delta):
        with pytest.raises(InvalidMovementError):
            ledger_service.apply_movement(
                warehouse_id=warehouse_id,
                product=KEROSENE,
                kind=kind,
                quantity_delta=Decimal(delta),
                source_ref=SourceRef(SourceKind.MANUAL, "x"),
                actor_id=test_actor_id,
            )
        assert _stock(ledger_selector, warehouse_id).entry_count == 0

    def test_unknown_kind(self, warehouse_id, ledger_service, test_actor_id):
        with pytest.raises(InvalidFieldValueError):
            ledger_service.apply_movement(
                warehouse_id=warehouse_id,
                product=KEROSENE,
                kind="theft",
                quantity_delta=Decimal("-1"),
                source_ref=SourceRef(SourceKind.MANUAL, "x"),
                actor_id=test_actor_id,
            )

    def test_non_numeric_quantity(self, warehouse_id, ledger_service, test_actor_id):
        with pytest.raises(InvalidQuantityError):
            ledger_service.apply_movement(
                warehouse_id=warehouse_id,
                product=KEROSENE,
                kind=MovementKind.RECEIPT,
                quantity_delta="a lot",
                source_ref=SourceRef(SourceKind.MANUAL, "x"),
                actor_id=test_actor_id,
            )

    def test_negative_price(self, warehouse_id, ledger_service, test_actor_id):
        with pytest.raises(InvalidQuantityError) as exc_info:
            ledger_service.apply_movement(
                warehouse_id=warehouse_id,
                product=KEROSENE,
                kind=MovementKind.RECEIPT,
                quantity_delta=Decimal("1"),
                unit_price=Decimal("-5"),
                source_ref=SourceRef(SourceKind.MANUAL, "x"),
                actor_id=test_actor_id,
            )
        assert exc_info.value.field == "unit_price"

    def test_unknown_product(self, warehouse_id, ledger_service, test_actor_id):
        with pytest.raises(UnknownProductError):
            ledger_service.apply_movement(
                warehouse_id=warehouse_id,
                product="diesel",
                kind=MovementKind.RECEIPT,
                quantity_delta=Decimal("1"),
                source_ref=SourceRef(SourceKind.MANUAL, "x"),
                actor_id=test_actor_id,
            )

    def test_unknown_warehouse(self, ledger_service, test_actor_id, db_tables):
        with pytest.raises(WarehouseNotFoundError):
            ledger_service.apply_movement(
                warehouse_id=uuid4(),
                product=KEROSENE,
                kind=MovementKind.RECEIPT,
                quantity_delta=Decimal("1"),
                source_ref=SourceRef(SourceKind.MANUAL, "x"),
                actor_id=test_actor_id,
            )

    def test_soft_deleted_warehouse_rejects_movements(
        self, warehouse_id, receive, warehouse_service, test_actor_id
    ):
        receive(warehouse_id, 10, 1)
        warehouse_service.soft_delete_warehouse(warehouse_id, test_actor_id)
        with pytest.raises(WarehouseNotFoundError):
            receive(warehouse_id, 10, 1)


class TestLogging:
    def test_movement_applied_is_logged(self, warehouse_id, receive, captured_logs):
        entry = receive(warehouse_id, 1000, 50)

        records = [r for r in captured_logs() if r["message"] == "movement_applied"]
        assert len(records) == 1
        record = records[0]
        assert record["warehouse_id"] == str(warehouse_id)
        assert record["seq"] == entry.seq
        assert record["kind"] == "receipt"
        assert Decimal(record["average_cost_after"]) == Decimal("50")

    def test_costing_engine_trace_emitted(self, warehouse_id, receive, captured_logs):
        receive(warehouse_id, 1, 1)
        traces = [r for r in captured_logs() if r["message"] == "FUEL_ENGINE_TRACE"]
        assert any(t["engine_name"] == "weighted_average_cost" for t in traces)
