"""Request parsing and response shaping shared by the blueprints."""

from __future__ import annotations

from datetime import date, datetime
from uuid import UUID

from flask import current_app, request

from fuel_kernel.domain.dtos import (
    LedgerEntryRecord,
    LedgerPage,
    OverlapResult,
    PriceRecordInfo,
    SelectionResult,
    StockSnapshot,
    WarehouseSnapshot,
)
from fuel_kernel.domain.values import PriceScope, as_uuid
from fuel_kernel.exceptions import InvalidFieldValueError
from fuel_kernel.models.deal import DealRecord
from fuel_kernel.services.ledger_coordinator import LedgerCoordinator

ACTOR_HEADER = "X-Actor-Id"


def coordinator() -> LedgerCoordinator:
    return current_app.extensions["fuel_ledger"]


def settings():
    return current_app.config["FUEL_SETTINGS"]


def actor_id() -> UUID:
    value = request.headers.get(ACTOR_HEADER)
    if not value:
        raise InvalidFieldValueError(ACTOR_HEADER, value)
    return as_uuid(value, ACTOR_HEADER)


def json_body() -> dict:
    body = request.get_json(silent=True)
    if body is None:
        return {}
    if not isinstance(body, dict):
        raise InvalidFieldValueError("body", body)
    return body


def require(data, key: str):
    value = data.get(key)
    if value is None or (isinstance(value, str) and not value.strip()):
        raise InvalidFieldValueError(key, value)
    return value


def parse_date(value, field: str) -> date:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        raise InvalidFieldValueError(field, value) from None


def parse_datetime(value, field: str) -> datetime | None:
    if value is None:
        return None
    try:
        return datetime.fromisoformat(str(value))
    except ValueError:
        raise InvalidFieldValueError(field, value) from None


def optional_uuid(value, field: str) -> UUID | None:
    if value is None or value == "":
        return None
    return as_uuid(value, field)


def scope_from(data) -> PriceScope:
    return PriceScope.from_values(
        counterparty_id=data.get("counterpartyId"),
        counterparty_type=data.get("counterpartyType"),
        counterparty_role=data.get("counterpartyRole"),
        product=data.get("product"),
        basis_id=data.get("basisId"),
    )


def page_args() -> tuple[int, int]:
    api = settings().api
    try:
        page = int(request.args.get("page", 1))
        per_page = int(request.args.get("per_page", api.default_page_size))
    except ValueError:
        raise InvalidFieldValueError("page", request.args.get("page")) from None
    return max(page, 1), min(max(per_page, 1), api.max_page_size)


# ---------------------------------------------------------------------------
# Serializers
# ---------------------------------------------------------------------------


def _s(value) -> str | None:
    return None if value is None else str(value)


def stock_json(stock: StockSnapshot) -> dict:
    return {
        "product": stock.product,
        "balance": str(stock.balance),
        "averageCost": str(stock.average_cost),
        "stockValue": str(stock.stock_value),
        "entryCount": stock.entry_count,
    }


def warehouse_json(snapshot: WarehouseSnapshot) -> dict:
    return {
        "id": str(snapshot.warehouse_id),
        "name": snapshot.name,
        "baseIds": [str(b) for b in snapshot.base_ids],
        "positions": [stock_json(p) for p in snapshot.positions],
        "deletedAt": snapshot.deleted_at.isoformat() if snapshot.deleted_at else None,
    }


def entry_json(entry: LedgerEntryRecord) -> dict:
    return {
        "id": str(entry.id),
        "warehouseId": str(entry.warehouse_id),
        "product": entry.product,
        "kind": entry.kind.value,
        "seq": entry.seq,
        "quantityDelta": str(entry.quantity_delta),
        "effectiveDelta": str(entry.effective_delta),
        "unitPrice": _s(entry.unit_price),
        "totalSum": _s(entry.total_sum),
        "balanceBefore": str(entry.balance_before),
        "balanceAfter": str(entry.balance_after),
        "averageCostBefore": str(entry.average_cost_before),
        "averageCostAfter": str(entry.average_cost_after),
        "shortfall": str(entry.shortfall),
        "sourceKind": entry.source.kind.value,
        "sourceId": entry.source.id,
        "reversalOfId": _s(entry.reversal_of_id),
        "transactionAt": entry.transaction_at.isoformat(),
        "createdAt": entry.created_at.isoformat(),
        "createdById": str(entry.created_by_id),
    }


def page_json(page: LedgerPage) -> dict:
    return {
        "entries": [entry_json(e) for e in page.entries],
        "page": page.page,
        "perPage": page.per_page,
        "total": page.total,
        "pages": page.pages,
        "hasNext": page.has_next,
    }


def overlap_json(result: OverlapResult) -> dict:
    return {
        "status": result.status.value,
        "message": result.message,
        "overlaps": [
            {
                "id": str(o.id),
                "dateFrom": o.date_from.isoformat(),
                "dateTo": o.date_to.isoformat(),
            }
            for o in result.overlaps
        ],
    }


def price_json(price: PriceRecordInfo) -> dict:
    return {
        "id": str(price.id),
        "counterpartyId": str(price.counterparty_id),
        "counterpartyType": price.counterparty_type,
        "counterpartyRole": price.counterparty_role,
        "product": price.product,
        "basisId": str(price.basis_id),
        "dateFrom": price.date_from.isoformat(),
        "dateTo": price.date_to.isoformat(),
        "priceValues": [str(v) for v in price.price_values],
        "volume": _s(price.volume),
        "soldVolume": _s(price.sold_volume),
        "currency": price.currency,
        "contractNumber": price.contract_number,
        "notes": price.notes,
        "isActive": price.is_active,
        "dateCheckWarning": price.date_check_warning,
    }


def selection_json(result: SelectionResult) -> dict:
    return {
        "totalVolume": str(result.total_volume),
        "dealCount": result.deal_count,
        "dateFrom": result.date_from.isoformat(),
        "dateTo": result.date_to.isoformat(),
        "priceId": _s(result.price_id),
    }


def deal_json(deal: DealRecord) -> dict:
    return {
        "id": str(deal.id),
        "dealType": deal.deal_type,
        "supplierId": str(deal.supplier_id),
        "buyerId": str(deal.buyer_id),
        "basisId": str(deal.basis_id),
        "product": deal.product,
        "quantityKg": str(deal.quantity_kg),
        "unitPrice": _s(deal.unit_price),
        "dealDate": deal.deal_date.isoformat(),
        "warehouseId": _s(deal.warehouse_id),
        "deletedAt": deal.deleted_at.isoformat() if deal.deleted_at else None,
    }
