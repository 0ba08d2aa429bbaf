"""
Tests for InventoryLedgerService.reverse_entry.

Reversals are new ADJUSTMENT entries linked to the original; the original
row is never modified and each entry can be reversed at most once.
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from fuel_kernel.domain.values import MovementKind
from fuel_kernel.exceptions import (
    EntryAlreadyReversedError,
    InsufficientBalanceError,
    LedgerEntryNotFoundError,
    ReversalOfReversalError,
    WarehouseNotFoundError,
)
from fuel_kernel.services.ledger_service import InventoryLedgerService


class TestReverseLatestEntry:
    def test_restores_prior_position_exactly(
        self, ledger_service, warehouse_id, receive, ledger_selector, test_actor_id
    ):
        receive(warehouse_id, 1000, 50)
        second = receive(warehouse_id, 500, 56)

        result = ledger_service.reverse_entry(second.id, test_actor_id)

        assert result.original_entry_id == second.id
        reversal = result.reversal
        assert reversal.kind is MovementKind.ADJUSTMENT
        assert reversal.reversal_of_id == second.id
        assert reversal.source == second.source
        assert reversal.quantity_delta == Decimal("-500")
        assert reversal.balance_after == Decimal("1000")
        assert reversal.average_cost_after == Decimal("50")
        assert reversal.seq == 3

        stock = ledger_selector.get_stock(warehouse_id, "kerosene")
        assert stock.balance == Decimal("1000")
        assert stock.average_cost == Decimal("50")

    def test_original_entry_unchanged(
        self, ledger_service, warehouse_id, receive, ledger_selector, test_actor_id
    ):
        entry = receive(warehouse_id, 100, 10)
        ledger_service.reverse_entry(entry.id, test_actor_id)

        stored = ledger_selector.get_entry(entry.id)
        assert stored == entry
        assert ledger_selector.reversal_of(entry.id).reversal_of_id == entry.id

    def test_reversal_logged(self, ledger_service, warehouse_id, receive, test_actor_id, captured_logs):
        entry = receive(warehouse_id, 100, 10)
        ledger_service.reverse_entry(entry.id, test_actor_id)

        records = [r for r in captured_logs() if r["message"] == "entry_reversed"]
        assert records[0]["entry_id"] == str(entry.id)
        assert records[0]["restored_exactly"] is True


class TestReverseWithLaterActivity:
    def test_withdraws_receipt_value_from_remaining_stock(
        self, ledger_service, warehouse_id, receive, withdraw, test_actor_id
    ):
        receive(warehouse_id, 1000, 50)
        second = receive(warehouse_id, 500, 56)
        withdraw(warehouse_id, 600)

        reversal = ledger_service.reverse_entry(second.id, test_actor_id).reversal

        # 900 * 52 - 500 * 56 = 18800 over 400 kg
        assert reversal.balance_before == Decimal("900")
        assert reversal.balance_after == Decimal("400")
        assert reversal.average_cost_after == Decimal("47")

    def test_reversing_sale_returns_stock_at_current_cost(
        self, ledger_service, warehouse_id, receive, withdraw, test_actor_id
    ):
        receive(warehouse_id, 1000, 50)
        sale = withdraw(warehouse_id, 600)
        receive(warehouse_id, 400, 60)

        reversal = ledger_service.reverse_entry(sale.id, test_actor_id).reversal

        assert reversal.quantity_delta == Decimal("600")
        assert reversal.balance_after == Decimal("1400")
        assert reversal.average_cost_after == Decimal("55")

    def test_clamped_outflow_restores_only_what_it_removed(
        self, ledger_service, warehouse_id, receive, withdraw, test_actor_id
    ):
        receive(warehouse_id, 100, 50)
        sale = withdraw(warehouse_id, 150)
        assert sale.shortfall == Decimal("50")

        reversal = ledger_service.reverse_entry(sale.id, test_actor_id).reversal

        assert reversal.quantity_delta == Decimal("100")
        assert reversal.balance_after == Decimal("100")
        assert reversal.average_cost_after == Decimal("50")

    def test_reject_policy_blocks_reversal_below_zero(
        self, session, deterministic_clock, reject_policy, warehouse_id, receive,
        withdraw, test_actor_id, ledger_selector,
    ):
        receipt = receive(warehouse_id, 300, 10)
        withdraw(warehouse_id, 250)
        strict = InventoryLedgerService(session, deterministic_clock, reject_policy)

        with pytest.raises(InsufficientBalanceError):
            strict.reverse_entry(receipt.id, test_actor_id)

        assert ledger_selector.reversal_of(receipt.id) is None
        assert ledger_selector.get_stock(warehouse_id, "kerosene").balance == Decimal("50")


class TestReversalGuards:
    def test_unknown_entry(self, ledger_service, test_actor_id, db_tables):
        with pytest.raises(LedgerEntryNotFoundError):
            ledger_service.reverse_entry(uuid4(), test_actor_id)

    def test_entry_reversed_at_most_once(self, ledger_service, warehouse_id, receive, test_actor_id):
        entry = receive(warehouse_id, 100, 10)
        first = ledger_service.reverse_entry(entry.id, test_actor_id)

        with pytest.raises(EntryAlreadyReversedError) as exc_info:
            ledger_service.reverse_entry(entry.id, test_actor_id)
        assert exc_info.value.reversal_id == str(first.reversal.id)

    def test_reversal_cannot_be_reversed(self, ledger_service, warehouse_id, receive, test_actor_id):
        entry = receive(warehouse_id, 100, 10)
        reversal = ledger_service.reverse_entry(entry.id, test_actor_id).reversal

        with pytest.raises(ReversalOfReversalError):
            ledger_service.reverse_entry(reversal.id, test_actor_id)

    def test_deleted_warehouse(
        self, ledger_service, warehouse_service, warehouse_id, receive, test_actor_id
    ):
        entry = receive(warehouse_id, 100, 10)
        warehouse_service.soft_delete_warehouse(warehouse_id, test_actor_id)

        with pytest.raises(WarehouseNotFoundError):
            ledger_service.reverse_entry(entry.id, test_actor_id)
