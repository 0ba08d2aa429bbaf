"""Deals and transfers: record keeping plus the ledger movements they trigger."""

from __future__ import annotations

from uuid import UUID

from flask import Blueprint, jsonify

from fuel_api.common import (
    actor_id,
    coordinator,
    deal_json,
    entry_json,
    json_body,
    optional_uuid,
    parse_date,
    parse_datetime,
    require,
)
from fuel_kernel.exceptions import DealNotFoundError

movements_bp = Blueprint("movements", __name__)

_DEAL_FIELDS = {
    "supplierId": "supplier_id",
    "buyerId": "buyer_id",
    "basisId": "basis_id",
    "product": "product",
    "quantityKg": "quantity_kg",
    "unitPrice": "unit_price",
    "dealDate": "deal_date",
    "warehouseId": "warehouse_id",
}


def _deal_changes(data: dict) -> dict:
    changes = {}
    for key, field in _DEAL_FIELDS.items():
        if key in data:
            value = data[key]
            if field == "deal_date":
                value = parse_date(value, key)
            changes[field] = value
    return changes


def _current_deal_keys(deal_id: UUID):
    def _keys(uow):
        deal = uow.deal_reads.get(deal_id)
        if deal is None:
            raise DealNotFoundError(str(deal_id))
        keys = []
        if deal.warehouse_id is not None:
            keys.append((deal.warehouse_id, deal.product))
        return keys

    return _keys


def _posted(deal, entries) -> dict:
    return {
        "deal": deal_json(deal),
        "entries": [entry_json(e) for e in entries],
    }


@movements_bp.route("/deals", methods=["POST"])
def create_deal():
    data = json_body()
    actor = actor_id()
    warehouse_id = optional_uuid(data.get("warehouseId"), "warehouseId")
    product = require(data, "product")

    def _work(uow):
        deal = uow.deals.create_deal(
            deal_type=require(data, "dealType"),
            supplier_id=require(data, "supplierId"),
            buyer_id=require(data, "buyerId"),
            basis_id=require(data, "basisId"),
            product=product,
            quantity_kg=require(data, "quantityKg"),
            unit_price=data.get("unitPrice"),
            deal_date=parse_date(require(data, "dealDate"), "dealDate"),
            warehouse_id=warehouse_id,
            actor_id=actor,
        )
        entry = uow.posting.record_deal(deal.id, actor)
        return _posted(deal, [entry] if entry else [])

    body = coordinator().execute(
        "create_deal",
        _work,
        keys=[(warehouse_id, product)] if warehouse_id else [],
        actor_id=actor,
    )
    return jsonify(body), 201


@movements_bp.route("/deals/<uuid:deal_id>", methods=["PUT"])
def update_deal(deal_id: UUID):
    data = json_body()
    actor = actor_id()
    changes = _deal_changes(data)
    new_warehouse = optional_uuid(data.get("warehouseId"), "warehouseId")

    def _work(uow):
        deal = uow.deals.update_deal(deal_id, actor, **changes)
        reversals, entry = uow.posting.revise_deal(deal.id, actor)
        return _posted(deal, [r.reversal for r in reversals] + ([entry] if entry else []))

    def _keys(uow):
        keys = _current_deal_keys(deal_id)(uow)
        deal = uow.deal_reads.get(deal_id)
        product = data.get("product") or deal.product
        keys.append((new_warehouse or deal.warehouse_id, product))
        return [k for k in keys if k[0] is not None]

    body = coordinator().execute("update_deal", _work, keys=_keys, actor_id=actor)
    return jsonify(body)


@movements_bp.route("/deals/<uuid:deal_id>", methods=["DELETE"])
def delete_deal(deal_id: UUID):
    actor = actor_id()

    def _work(uow):
        deal = uow.deals.delete_deal(deal_id, actor)
        reversals = uow.posting.cancel_deal(deal_id, actor)
        return _posted(deal, [r.reversal for r in reversals])

    body = coordinator().execute(
        "delete_deal", _work, keys=_current_deal_keys(deal_id), actor_id=actor
    )
    return jsonify(body)


@movements_bp.route("/movements/transfers", methods=["POST"])
def create_transfer():
    data = json_body()
    actor = actor_id()
    from_id = optional_uuid(require(data, "fromWarehouseId"), "fromWarehouseId")
    to_id = optional_uuid(require(data, "toWarehouseId"), "toWarehouseId")
    product = require(data, "product")

    result = coordinator().execute(
        "record_transfer",
        lambda uow: uow.posting.record_transfer(
            from_id,
            to_id,
            product,
            require(data, "quantity"),
            actor,
            delivery_cost=data.get("deliveryCost") or 0,
            movement_id=data.get("movementId"),
            transaction_at=parse_datetime(data.get("transactionAt"), "transactionAt"),
        ),
        keys=[(from_id, product), (to_id, product)],
        actor_id=actor,
    )
    return jsonify(
        {"outgoing": entry_json(result.outgoing), "incoming": entry_json(result.incoming)}
    ), 201
