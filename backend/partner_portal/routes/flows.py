# backend/partner_portal/routes/flows.py
"""
Partner flow API: list, inspect and progress orders and bookings.

Flows: table_orders, pickup_orders, store_pickup_orders, bookings, payment_orders.

- GET  /api/flows                                   - flow graphs (states, edges, terminals)
- GET  /api/flows/:flow/locations                   - locations the partner may act on
- GET  /api/flows/:flow/rows                        - one page of rows (status, q, page, location_id)
- GET  /api/flows/:flow/rows/:row_id                - one row with its allowed actions
- POST /api/flows/:flow/rows/:row_id/transition     - move a row to a successor status
- GET  /api/flows/:flow/summary                     - per-status counts and unread badge

SECURITY:
- All routes require a partner token
- Location scope comes from the token's partner id, NEVER from the request
- Rows outside the partner's locations answer 404, same as missing rows
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_partner
from ..rowstore import RowStoreError
from ..services.flows import FLOWS, get_flow
from ..services.location_service import partner_locations
from ..services.order_controller import (
    ActionInProgress,
    ListQuery,
    PersistenceFailure,
    RowNotFound,
    controller_for_app,
)
from ..services.status_machine import InvalidTransition
from ..time_utils import serialize_row
from ..validation import ValidationError, parse_location_id, parse_optional_text, parse_page

flows_bp = Blueprint("flows", __name__, url_prefix="/api/flows")


def list_query_from_args(args) -> ListQuery:
    """
    Raises:
        ValidationError: malformed page or location_id
    """
    return ListQuery(
        status=args.get("status") or None,
        search=args.get("q") or None,
        page=parse_page(args.get("page")),
        location_id=parse_location_id(args.get("location_id")),
    )


def transition_response(outcome) -> dict:
    return {
        "row": serialize_row(outcome.row),
        "from_status": outcome.decision.from_status,
        "to_status": outcome.decision.to_status,
        "inventory": outcome.inventory.to_dict() if outcome.inventory is not None else None,
    }


@flows_bp.get("")
@require_partner
def list_flows_route():
    return jsonify({"flows": [flow.to_dict() for flow in FLOWS.values()]}), 200


@flows_bp.get("/<flow_name>/locations")
@require_partner
def list_locations_route(flow_name: str):
    try:
        flow = get_flow(flow_name)
        locations = partner_locations(current_app.extensions["row_store"], g.partner_user_id, flow.location_kind)
        return jsonify({
            "locations": [serialize_row(loc) for loc in locations],
            "location_kind": flow.location_kind,
        }), 200

    except LookupError as e:
        return jsonify({"error": str(e)}), 404
    except RowStoreError as e:
        current_app.logger.warning("Location lookup failed: %s", e.message)
        return jsonify({"error": "Failed to load locations"}), 502
    except Exception:
        current_app.logger.exception("Failed to list locations")
        return jsonify({"error": "Internal server error"}), 500


@flows_bp.get("/<flow_name>/rows")
@require_partner
def list_rows_route(flow_name: str):
    """
    One page of rows, newest first (bookings: by date/time).

    Query parameters:
        status (optional): all | open | one of the flow's states
        q (optional): case-insensitive search over the flow's search fields
        page (optional): 1-based, default 1
        location_id (optional): one owned location, or "all"

    USAGE EXAMPLE:
        GET /api/flows/table_orders/rows?status=PLACED&page=2
        GET /api/flows/bookings/rows?q=smith&location_id=3
    """
    try:
        flow = get_flow(flow_name)
        query = list_query_from_args(request.args)
        controller = controller_for_app(current_app, flow, g.partner_user_id)
        page = controller.list_rows(query)

        body = page.to_dict()
        body["rows"] = [serialize_row(r) for r in page.rows]
        body["flow"] = flow.name
        return jsonify(body), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except LookupError as e:
        return jsonify({"error": str(e)}), 404
    except RowStoreError as e:
        current_app.logger.warning("List %s failed: %s", flow_name, e.message)
        return jsonify({"error": "Failed to load rows"}), 502
    except Exception:
        current_app.logger.exception("Failed to list rows")
        return jsonify({"error": "Internal server error"}), 500


@flows_bp.get("/<flow_name>/rows/<row_id>")
@require_partner
def get_row_route(flow_name: str, row_id: str):
    try:
        flow = get_flow(flow_name)
        controller = controller_for_app(current_app, flow, g.partner_user_id)
        row = controller.present(controller.get_row(row_id))
        return jsonify({"row": serialize_row(row)}), 200

    except LookupError as e:
        # Unknown flow, missing row, or row outside the partner's locations
        return jsonify({"error": str(e)}), 404
    except RowStoreError as e:
        current_app.logger.warning("Get %s/%s failed: %s", flow_name, row_id, e.message)
        return jsonify({"error": "Failed to load row"}), 502
    except Exception:
        current_app.logger.exception("Failed to get row")
        return jsonify({"error": "Internal server error"}), 500


@flows_bp.post("/<flow_name>/rows/<row_id>/transition")
@require_partner
def transition_row_route(flow_name: str, row_id: str):
    """
    Move a row to a successor status.

    Request body:
        {
            "status": "ACCEPTED",
            "cancel_reason": "Out of stock"   // optional; kept on cancel/reject edges only
        }

    Error responses:
        400: Missing status / malformed body
        401: No partner token
        404: Unknown flow or row
        409: Not an allowed transition
        502: Backend rejected the write
    """
    try:
        flow = get_flow(flow_name)
        data = request.get_json(silent=True) or {}
        status = data.get("status")
        if not isinstance(status, str) or not status.strip():
            return jsonify({"error": "status is required"}), 400
        cancel_reason = parse_optional_text(data.get("cancel_reason"), "cancel_reason")

        controller = controller_for_app(current_app, flow, g.partner_user_id)
        outcome = controller.transition(row_id, status.strip(), cancel_reason=cancel_reason)

        current_app.logger.info(
            "Partner %s moved %s %s: %s -> %s",
            g.partner_user_id, flow.name, row_id, outcome.decision.from_status, outcome.decision.to_status,
        )
        return jsonify(transition_response(outcome)), 200

    except InvalidTransition as e:
        return jsonify({"error": str(e), "from_status": e.from_status, "to_status": e.to_status}), 409
    except ActionInProgress as e:
        return jsonify({"error": str(e)}), 409
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except RowNotFound as e:
        return jsonify({"error": str(e)}), 404
    except LookupError as e:
        return jsonify({"error": str(e)}), 404
    except PersistenceFailure as e:
        current_app.logger.warning("Transition persistence failed: %s", e.message)
        return jsonify({"error": e.message}), 502
    except RowStoreError as e:
        current_app.logger.warning("Transition lookup failed: %s", e.message)
        return jsonify({"error": "Failed to load row"}), 502
    except Exception:
        current_app.logger.exception("Failed to transition row")
        return jsonify({"error": "Internal server error"}), 500


@flows_bp.get("/<flow_name>/summary")
@require_partner
def summary_route(flow_name: str):
    try:
        flow = get_flow(flow_name)
        controller = controller_for_app(current_app, flow, g.partner_user_id)
        return jsonify(controller.summary()), 200

    except LookupError as e:
        return jsonify({"error": str(e)}), 404
    except RowStoreError as e:
        current_app.logger.warning("Summary %s failed: %s", flow_name, e.message)
        return jsonify({"error": "Failed to load summary"}), 502
    except Exception:
        current_app.logger.exception("Failed to build summary")
        return jsonify({"error": "Internal server error"}), 500
