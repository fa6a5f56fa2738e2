# backend/partner_portal/routes/views.py
"""
Mounted partner views: the realtime half of the partner screens.

- POST   /api/views                                  - mount a view on a flow
- GET    /api/views/:id                              - snapshot (rows + queued sound/toast instructions)
- PATCH  /api/views/:id                              - change status/q/page/location filters
- DELETE /api/views/:id                              - unmount (drops subscription and timers)
- POST   /api/views/:id/audio-unlock                 - user gesture: allow the new-order sound
- POST   /api/views/:id/refetch                      - manual refresh
- POST   /api/views/:id/rows/:row_id/transition      - action with in-flight marker + optimistic patch

Views are per process and per partner; another partner's view id answers 404.
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_partner
from ..rowstore import RowStoreError
from ..services.flows import get_flow
from ..services.order_controller import (
    ActionInProgress,
    ListQuery,
    PersistenceFailure,
    RowNotFound,
    controller_for_app,
)
from ..services.status_machine import InvalidTransition
from ..services.view_service import UNCHANGED, ViewNotFound
from ..time_utils import serialize_row
from ..validation import ValidationError, parse_location_id, parse_optional_text, parse_page
from .flows import transition_response

views_bp = Blueprint("views", __name__, url_prefix="/api/views")


def _registry():
    return current_app.extensions["partner_views"]


def snapshot_response(view) -> dict:
    snapshot = view.snapshot()
    snapshot["rows"] = [serialize_row(r) for r in snapshot["rows"]]
    return snapshot


@views_bp.post("")
@require_partner
def open_view_route():
    """
    Request body:
        {
            "flow": "store_pickup_orders",
            "status": "open",        // optional
            "q": "SO-10",            // optional
            "page": 1,               // optional
            "location_id": 3         // optional, "all" or omitted = every location
        }
    """
    try:
        data = request.get_json(silent=True) or {}
        flow_name = data.get("flow")
        if not isinstance(flow_name, str) or not flow_name:
            return jsonify({"error": "flow is required"}), 400
        flow = get_flow(flow_name)

        query = ListQuery(
            status=data.get("status") or None,
            search=parse_optional_text(data.get("q"), "q", max_length=100),
            page=parse_page(data.get("page")),
            location_id=parse_location_id(data.get("location_id")),
        )
        controller = controller_for_app(current_app, flow, g.partner_user_id)
        view = _registry().open(
            current_app._get_current_object(),
            controller,
            owner_user_id=g.partner_user_id,
            query=query,
        )
        return jsonify({"view": snapshot_response(view)}), 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except LookupError as e:
        return jsonify({"error": str(e)}), 404
    except RowStoreError as e:
        current_app.logger.warning("Mounting view failed: %s", e.message)
        return jsonify({"error": "Failed to load rows"}), 502
    except Exception:
        current_app.logger.exception("Failed to open view")
        return jsonify({"error": "Internal server error"}), 500


@views_bp.get("/<view_id>")
@require_partner
def get_view_route(view_id: str):
    try:
        view = _registry().get(view_id, g.partner_user_id)
        return jsonify({"view": snapshot_response(view)}), 200

    except ViewNotFound as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to read view")
        return jsonify({"error": "Internal server error"}), 500


@views_bp.patch("/<view_id>")
@require_partner
def update_view_route(view_id: str):
    """
    Request body (all optional; omitted keys keep their value):
        {"status": "READY", "q": "", "page": 2, "location_id": "all"}
    """
    try:
        view = _registry().get(view_id, g.partner_user_id)
        data = request.get_json(silent=True) or {}

        view.update_filters(
            status=data.get("status") if "status" in data else None,
            search=(parse_optional_text(data.get("q"), "q", max_length=100) or "") if "q" in data else None,
            page=parse_page(data.get("page")) if "page" in data else None,
            location_id=parse_location_id(data.get("location_id")) if "location_id" in data else UNCHANGED,
        )
        return jsonify({"view": snapshot_response(view)}), 200

    except ViewNotFound as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except RowStoreError as e:
        current_app.logger.warning("View refetch failed: %s", e.message)
        return jsonify({"error": "Failed to load rows"}), 502
    except Exception:
        current_app.logger.exception("Failed to update view")
        return jsonify({"error": "Internal server error"}), 500


@views_bp.delete("/<view_id>")
@require_partner
def close_view_route(view_id: str):
    try:
        _registry().close(view_id, g.partner_user_id)
        return jsonify({"closed": True, "id": view_id}), 200

    except ViewNotFound as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to close view")
        return jsonify({"error": "Internal server error"}), 500


@views_bp.post("/<view_id>/audio-unlock")
@require_partner
def unlock_audio_route(view_id: str):
    try:
        view = _registry().get(view_id, g.partner_user_id)
        view.unlock_audio()
        return jsonify({"audio_unlocked": True}), 200

    except ViewNotFound as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to unlock audio")
        return jsonify({"error": "Internal server error"}), 500


@views_bp.post("/<view_id>/refetch")
@require_partner
def refetch_view_route(view_id: str):
    try:
        view = _registry().get(view_id, g.partner_user_id)
        view.refetch()
        return jsonify({"view": snapshot_response(view)}), 200

    except ViewNotFound as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to refetch view")
        return jsonify({"error": "Internal server error"}), 500


@views_bp.post("/<view_id>/rows/<row_id>/transition")
@require_partner
def view_transition_route(view_id: str, row_id: str):
    """
    Same contract as /api/flows/:flow/rows/:row_id/transition, plus:
    - 409 while an earlier request for the same row in this view is in flight
    - the view's local row is patched immediately and reverted on 502
    """
    try:
        view = _registry().get(view_id, g.partner_user_id)
        data = request.get_json(silent=True) or {}
        status = data.get("status")
        if not isinstance(status, str) or not status.strip():
            return jsonify({"error": "status is required"}), 400
        cancel_reason = parse_optional_text(data.get("cancel_reason"), "cancel_reason")

        outcome = view.transition(row_id, status.strip(), cancel_reason=cancel_reason)

        current_app.logger.info(
            "Partner %s moved %s %s via view %s: %s -> %s",
            g.partner_user_id, view.flow.name, row_id, view_id,
            outcome.decision.from_status, outcome.decision.to_status,
        )
        return jsonify(transition_response(outcome)), 200

    except ViewNotFound as e:
        return jsonify({"error": str(e)}), 404
    except InvalidTransition as e:
        return jsonify({"error": str(e), "from_status": e.from_status, "to_status": e.to_status}), 409
    except ActionInProgress as e:
        return jsonify({"error": str(e)}), 409
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except RowNotFound as e:
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
