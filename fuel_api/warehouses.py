"""Warehouse directory, stock snapshots, ledger listings and manual movements."""

from __future__ import annotations

from uuid import UUID, uuid4

from flask import Blueprint, jsonify, request

from fuel_api.common import (
    actor_id,
    coordinator,
    entry_json,
    json_body,
    optional_uuid,
    page_args,
    page_json,
    parse_datetime,
    require,
    warehouse_json,
)
from fuel_kernel.domain.values import SourceKind, SourceRef, as_enum
from fuel_kernel.exceptions import LedgerEntryNotFoundError

warehouses_bp = Blueprint("warehouses", __name__)


@warehouses_bp.route("/bases", methods=["POST"])
def create_base():
    data = json_body()
    actor = actor_id()
    base_id = coordinator().execute(
        "create_supply_base",
        lambda uow: uow.warehouses.create_supply_base(
            require(data, "name"), actor, base_type=data.get("baseType")
        ),
        actor_id=actor,
    )
    return jsonify({"id": str(base_id)}), 201


@warehouses_bp.route("/warehouses", methods=["POST"])
def create_warehouse():
    data = json_body()
    actor = actor_id()
    base_ids = [optional_uuid(b, "baseIds") for b in data.get("baseIds") or []]
    snapshot = coordinator().execute(
        "create_warehouse",
        lambda uow: uow.warehouses.create_warehouse(
            require(data, "name"), actor, base_ids=base_ids
        ),
        actor_id=actor,
    )
    return jsonify(warehouse_json(snapshot)), 201


@warehouses_bp.route("/warehouses/<uuid:warehouse_id>", methods=["DELETE"])
def delete_warehouse(warehouse_id: UUID):
    actor = actor_id()
    snapshot = coordinator().execute(
        "soft_delete_warehouse",
        lambda uow: uow.warehouses.soft_delete_warehouse(warehouse_id, actor),
        actor_id=actor,
    )
    return jsonify(warehouse_json(snapshot))


@warehouses_bp.route("/warehouses/<uuid:warehouse_id>/stock", methods=["GET"])
def warehouse_stock(warehouse_id: UUID):
    snapshot = coordinator().read(
        lambda uow: uow.ledger_reads.get_warehouse_snapshot(warehouse_id)
    )
    return jsonify(warehouse_json(snapshot))


@warehouses_bp.route("/warehouses/<uuid:warehouse_id>/entries", methods=["GET"])
def warehouse_entries(warehouse_id: UUID):
    page, per_page = page_args()
    product = request.args.get("product") or None

    def _list(uow):
        uow.ledger_reads.get_warehouse_snapshot(warehouse_id, include_deleted=True)
        return uow.ledger_reads.list_entries(
            warehouse_id, product=product, page=page, per_page=per_page
        )

    return jsonify(page_json(coordinator().read(_list)))


@warehouses_bp.route("/warehouses/<uuid:warehouse_id>/movements", methods=["POST"])
def apply_movement(warehouse_id: UUID):
    data = json_body()
    actor = actor_id()
    product = require(data, "product")
    source = SourceRef(
        as_enum(SourceKind, data.get("sourceKind") or SourceKind.MANUAL.value, "sourceKind"),
        data.get("sourceId") or str(uuid4()),
    )
    entry = coordinator().execute(
        "apply_movement",
        lambda uow: uow.ledger.apply_movement(
            warehouse_id=warehouse_id,
            product=product,
            kind=require(data, "kind"),
            quantity_delta=require(data, "quantityDelta"),
            unit_price=data.get("unitPrice"),
            total_sum=data.get("totalSum"),
            source_ref=source,
            actor_id=actor,
            transaction_at=parse_datetime(data.get("transactionAt"), "transactionAt"),
        ),
        keys=[(warehouse_id, product)],
        actor_id=actor,
    )
    return jsonify(entry_json(entry)), 201


@warehouses_bp.route("/entries/<uuid:entry_id>/reversal", methods=["POST"])
def reverse_entry(entry_id: UUID):
    actor = actor_id()

    def _keys(uow):
        entry = uow.ledger_reads.get_entry(entry_id)
        if entry is None:
            raise LedgerEntryNotFoundError(str(entry_id))
        return [(entry.warehouse_id, entry.product)]

    result = coordinator().execute(
        "reverse_entry",
        lambda uow: uow.ledger.reverse_entry(entry_id, actor),
        keys=_keys,
        actor_id=actor,
    )
    body = entry_json(result.reversal)
    body["originalEntryId"] = str(result.original_entry_id)
    return jsonify(body), 201
