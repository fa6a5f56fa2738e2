# Overview: Service-layer resolution of the locations a partner may act on.

from __future__ import annotations

from ..rowstore import Filters, OrderBy, RowStoreClient

LOCATION_RESTAURANT = "restaurant"
LOCATION_STORE = "store"


def owned_restaurants(client: RowStoreClient, partner_user_id: str) -> list[dict]:
    return client.select(
        "restaurants",
        columns=("id", "name", "city", "is_active"),
        filters=Filters(eq={"owner_user_id": partner_user_id}),
        order_by=(OrderBy("name", descending=False),),
    ).rows


def accessible_stores(client: RowStoreClient, partner_user_id: str) -> list[dict]:
    """
    Stores the partner owns plus stores they are a member of.

    Deduplicated by id, sorted by name.
    """
    owned = client.select(
        "stores",
        columns=("id", "name", "city", "is_active"),
        filters=Filters(eq={"owner_user_id": partner_user_id}),
    ).rows

    memberships = client.select(
        "store_members",
        columns=("store_id",),
        filters=Filters(eq={"user_id": partner_user_id}),
    ).rows
    member_ids = [m["store_id"] for m in memberships]
    member_stores = []
    if member_ids:
        member_stores = client.select(
            "stores",
            columns=("id", "name", "city", "is_active"),
            filters=Filters(in_={"id": member_ids}),
        ).rows

    by_id: dict[str, dict] = {}
    for store in owned + member_stores:
        by_id[str(store["id"])] = store
    return sorted(by_id.values(), key=lambda s: str(s.get("name") or ""))


def partner_locations(client: RowStoreClient, partner_user_id: str, kind: str) -> list[dict]:
    """
    Raises:
        ValueError: unknown location kind
    """
    if kind == LOCATION_RESTAURANT:
        return owned_restaurants(client, partner_user_id)
    if kind == LOCATION_STORE:
        return accessible_stores(client, partner_user_id)
    raise ValueError(f"unknown location kind '{kind}'")


def partner_location_ids(client: RowStoreClient, partner_user_id: str, kind: str) -> list:
    return [loc["id"] for loc in partner_locations(client, partner_user_id, kind)]
