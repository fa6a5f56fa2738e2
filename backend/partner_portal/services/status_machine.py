# Overview: Service-layer status machine for order and booking lifecycles; pure decisions, no I/O.

"""
Partner Portal Status Machine

================================================================================
PURPOSE: Decide whether a partner action may move a row from one status to another
================================================================================

Every order/booking flow is a fixed directed graph of statuses. The machine is
parameterized by a FlowDefinition (see flows.py) instead of being copied per
page, and it never reads or writes the row store: callers apply the decision.

RULES (NON-NEGOTIABLE):
1. Only direct edges of the flow graph are legal (no skipping states).
2. No edge returns to an earlier state; graphs are acyclic.
3. Terminal states (no outgoing edge) accept nothing.
4. Unknown current or requested statuses are errors, not no-ops.
5. Each edge stamps exactly one timestamp column, and only if it is still empty.
6. Every status-changing action also marks the row as seen by the partner.
7. cancel_reason is written only on edges into a cancelled/rejected state.

================================================================================
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional


class LifecycleError(ValueError):
    """
    Raised when a status change violates the flow's rules.

    This is a domain error, not a technical error.
    """
    pass


class InvalidTransition(LifecycleError):
    """Requested status is not a direct successor of the current status."""

    def __init__(self, flow: str, from_status: Any, to_status: Any, reason: str) -> None:
        super().__init__(
            f"Cannot move {flow} row from '{from_status}' to '{to_status}': {reason}"
        )
        self.flow = flow
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason


@dataclass(frozen=True)
class Edge:
    source: str
    target: str
    # Column stamped with 'now' when this edge is taken
    timestamp_field: str
    decrements_inventory: bool = False
    accepts_reason: bool = False


@dataclass(frozen=True)
class FlowDefinition:
    """
    One order/booking lifecycle and the table it lives in.

    read_field is either a boolean column ("read") or a timestamp column
    ("partner_seen_at"); both mean "a partner has acknowledged this row".
    """
    name: str
    label: str
    table: str
    location_field: str
    # "restaurant" | "store"
    location_kind: str
    status_field: str
    states: tuple[str, ...]
    initial: tuple[str, ...]
    edges: tuple[Edge, ...]
    read_field: str
    label_field: str
    search_fields: tuple[str, ...] = ()
    order_by: tuple[str, ...] = ("created_at",)
    tracks_inventory: bool = False
    _by_source: dict = field(default=None, init=False, repr=False, compare=False, hash=False)

    def __post_init__(self) -> None:
        index: dict[str, dict[str, Edge]] = {}
        for edge in self.edges:
            if edge.source not in self.states or edge.target not in self.states:
                raise ValueError(f"{self.name}: edge {edge.source}->{edge.target} uses an undeclared state")
            if edge.source == edge.target:
                raise ValueError(f"{self.name}: self edge on {edge.source}")
            index.setdefault(edge.source, {})[edge.target] = edge
        object.__setattr__(self, "_by_source", index)

    @property
    def terminal(self) -> frozenset[str]:
        return frozenset(s for s in self.states if not self._by_source.get(s))

    @property
    def open_states(self) -> tuple[str, ...]:
        return tuple(s for s in self.states if self._by_source.get(s))

    def edge(self, source: str, target: str) -> Optional[Edge]:
        return self._by_source.get(source, {}).get(target)

    def successors(self, source: str) -> list[str]:
        return list(self._by_source.get(source, {}).keys())

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "label": self.label,
            "table": self.table,
            "location_kind": self.location_kind,
            "status_field": self.status_field,
            "states": list(self.states),
            "initial": list(self.initial),
            "terminal": sorted(self.terminal),
            "edges": [
                {
                    "from": e.source,
                    "to": e.target,
                    "timestamp_field": e.timestamp_field,
                    "decrements_inventory": e.decrements_inventory,
                    "accepts_reason": e.accepts_reason,
                }
                for e in self.edges
            ],
        }


@dataclass(frozen=True)
class TransitionDecision:
    """Accepted transition plus the side effects the caller must apply."""
    flow: FlowDefinition
    from_status: str
    to_status: str
    timestamp_field: str
    requires_inventory_decrement: bool
    accepts_reason: bool
    marks_read: bool = True


def validate_status(flow: FlowDefinition, status: Any) -> str:
    """
    Raises:
        InvalidTransition: status is not one of the flow's declared states
    """
    if not isinstance(status, str) or status not in flow.states:
        raise InvalidTransition(
            flow.name, status, None,
            f"unknown status '{status}'. Must be one of: {', '.join(flow.states)}",
        )
    return status


def decide(flow: FlowDefinition, current: Any, requested: Any) -> TransitionDecision:
    """
    Decide a partner-requested status change.

    Args:
        flow: Flow the row belongs to
        current: Row's persisted status
        requested: Status the partner asked for

    Returns:
        TransitionDecision with the timestamp to stamp and side-effect flags

    Raises:
        InvalidTransition: unknown status, terminal current status, or no such edge
    """
    validate_status(flow, current)
    if not isinstance(requested, str) or requested not in flow.states:
        raise InvalidTransition(flow.name, current, requested, f"unknown status '{requested}'")

    if current in flow.terminal:
        raise InvalidTransition(flow.name, current, requested, f"'{current}' is terminal")

    edge = flow.edge(current, requested)
    if edge is None:
        allowed = flow.successors(current)
        raise InvalidTransition(
            flow.name, current, requested,
            f"allowed next statuses are: {', '.join(allowed)}",
        )

    return TransitionDecision(
        flow=flow,
        from_status=current,
        to_status=requested,
        timestamp_field=edge.timestamp_field,
        requires_inventory_decrement=bool(flow.tracks_inventory and edge.decrements_inventory),
        accepts_reason=edge.accepts_reason,
    )


def can_transition(flow: FlowDefinition, current: Any, requested: Any) -> bool:
    try:
        decide(flow, current, requested)
    except InvalidTransition:
        return False
    return True


def allowed_transitions(flow: FlowDefinition, current: Any) -> list[str]:
    """Targets the UI may offer as clickable actions for a row in `current`."""
    if current not in flow.states:
        return []
    return flow.successors(current)


def is_unread(flow: FlowDefinition, row: dict) -> bool:
    """Pending row nobody on the partner side has acknowledged yet."""
    if row.get(flow.status_field) not in flow.initial:
        return False
    marker = row.get(flow.read_field)
    return not marker


def build_transition_patch(
    decision: TransitionDecision,
    row: dict,
    now: datetime,
    *,
    cancel_reason: Optional[str] = None,
) -> dict:
    """
    Persistence patch for an accepted decision.

    - status column -> target
    - timestamp column -> now, unless the row already carries one
    - read marker -> set (boolean True, or partner_seen_at on first acknowledgement)
    - cancel_reason -> only on cancel/reject edges
    """
    flow = decision.flow
    patch: dict[str, Any] = {flow.status_field: decision.to_status}

    if row.get(decision.timestamp_field) is None:
        patch[decision.timestamp_field] = now

    if decision.marks_read:
        if flow.read_field == "read":
            patch["read"] = True
        elif row.get(flow.read_field) is None:
            patch[flow.read_field] = now

    if decision.accepts_reason:
        reason = (cancel_reason or "").strip()
        patch["cancel_reason"] = reason or None

    return patch
