"""Price records: overlap checks, volume selection, lookup and CRUD."""

from __future__ import annotations

from uuid import UUID

from flask import Blueprint, jsonify, request

from fuel_api.common import (
    actor_id,
    coordinator,
    json_body,
    optional_uuid,
    overlap_json,
    parse_date,
    price_json,
    require,
    scope_from,
    selection_json,
    settings,
)

prices_bp = Blueprint("prices", __name__)

_PRICE_FIELDS = {
    "counterpartyId": "counterparty_id",
    "counterpartyType": "counterparty_type",
    "counterpartyRole": "counterparty_role",
    "product": "product",
    "basisId": "basis_id",
    "dateFrom": "date_from",
    "dateTo": "date_to",
    "priceValues": "price_values",
    "volume": "volume",
    "currency": "currency",
    "contractNumber": "contract_number",
    "notes": "notes",
}


def _strict_flag(data) -> bool | None:
    value = data.get("strict")
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    return str(value).lower() in ("1", "true", "yes")


def _write_json(result) -> dict:
    body = price_json(result.price)
    body["overlap"] = overlap_json(result.overlap)
    return body


@prices_bp.route("/check-date-overlaps", methods=["GET"])
def check_date_overlaps():
    args = request.args
    scope = scope_from(args)
    date_from = parse_date(require(args, "dateFrom"), "dateFrom")
    date_to = parse_date(require(args, "dateTo"), "dateTo")
    exclude_id = optional_uuid(args.get("excludeId"), "excludeId")

    result = coordinator().read(
        lambda uow: uow.prices.check_overlap(scope, date_from, date_to, exclude_id=exclude_id)
    )
    return jsonify(overlap_json(result))


@prices_bp.route("/calculate-selection", methods=["GET"])
def calculate_selection():
    args = request.args
    scope = scope_from(args)
    date_from = parse_date(require(args, "dateFrom"), "dateFrom")
    date_to = parse_date(require(args, "dateTo"), "dateTo")
    price_id = optional_uuid(args.get("priceId"), "priceId")

    if price_id is None:
        result = coordinator().read(
            lambda uow: uow.selection.calculate_selection(scope, date_from, date_to)
        )
    else:
        actor = actor_id()
        result = coordinator().execute(
            "calculate_selection",
            lambda uow: uow.selection.calculate_selection(
                scope, date_from, date_to, price_id=price_id, actor_id=actor
            ),
            actor_id=actor,
        )
    return jsonify(selection_json(result))


@prices_bp.route("/find-active", methods=["GET"])
def find_active():
    args = request.args
    scope = scope_from(args)
    on_date = parse_date(require(args, "date"), "date")
    prices = coordinator().read(lambda uow: uow.prices.find_active_prices(scope, on_date))
    return jsonify([price_json(p) for p in prices])


@prices_bp.route("", methods=["POST"])
def create_price():
    data = json_body()
    actor = actor_id()
    scope = scope_from(data)
    date_from = parse_date(require(data, "dateFrom"), "dateFrom")
    date_to = parse_date(require(data, "dateTo"), "dateTo")

    result = coordinator().execute(
        "create_price",
        lambda uow: uow.prices.create_price(
            scope=scope,
            date_from=date_from,
            date_to=date_to,
            price_values=data.get("priceValues") or [],
            volume=data.get("volume"),
            currency=data.get("currency") or settings().default_currency,
            contract_number=data.get("contractNumber"),
            notes=data.get("notes"),
            actor_id=actor,
            strict=_strict_flag(data),
        ),
        actor_id=actor,
    )
    return jsonify(_write_json(result)), 201


@prices_bp.route("/<uuid:price_id>", methods=["PUT"])
def update_price(price_id: UUID):
    data = json_body()
    actor = actor_id()
    changes = {}
    for key, field in _PRICE_FIELDS.items():
        if key in data:
            value = data[key]
            if field in ("date_from", "date_to"):
                value = parse_date(value, key)
            changes[field] = value

    result = coordinator().execute(
        "update_price",
        lambda uow: uow.prices.update_price(
            price_id, actor, strict=_strict_flag(data), **changes
        ),
        actor_id=actor,
    )
    return jsonify(_write_json(result))


@prices_bp.route("/<uuid:price_id>", methods=["DELETE"])
def delete_price(price_id: UUID):
    actor = actor_id()
    price = coordinator().execute(
        "deactivate_price",
        lambda uow: uow.prices.deactivate_price(price_id, actor),
        actor_id=actor,
    )
    return jsonify(price_json(price))
