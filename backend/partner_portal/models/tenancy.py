from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Restaurant(db.Model):
    """
    Restaurant location owned by a restaurant partner.

    MULTI-TENANT: Every restaurant-side order, table order and booking carries
    restaurant_id. A partner only ever sees rows for restaurants where
    owner_user_id is their identity.
    """
    __tablename__ = "restaurants"
    __table_args__ = (
        db.Index("ix_restaurants_owner_name", "owner_user_id", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    # Identity issued by the external auth provider
    owner_user_id = db.Column(db.String(64), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    city = db.Column(db.String(120), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Restaurant id={self.id} name={self.name!r} owner={self.owner_user_id!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "owner_user_id": self.owner_user_id,
            "name": self.name,
            "city": self.city,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class Store(db.Model):
    """
    Retail store location.

    MULTI-TENANT: Visible to its owner and to every user listed in
    store_members for it.
    """
    __tablename__ = "stores"
    __table_args__ = (
        db.Index("ix_stores_owner_name", "owner_user_id", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    owner_user_id = db.Column(db.String(64), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    city = db.Column(db.String(120), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    members = db.relationship("StoreMember", backref="store", lazy=True)

    def __repr__(self) -> str:
        return f"<Store id={self.id} name={self.name!r} owner={self.owner_user_id!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "owner_user_id": self.owner_user_id,
            "name": self.name,
            "city": self.city,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class StoreMember(db.Model):
    """Staff access to a store that the user does not own."""
    __tablename__ = "store_members"
    __table_args__ = (
        db.UniqueConstraint("store_id", "user_id", name="uq_store_members_store_user"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    user_id = db.Column(db.String(64), nullable=False, index=True)
    role = db.Column(db.String(32), nullable=False, default="staff")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<StoreMember store_id={self.store_id} user_id={self.user_id!r} role={self.role!r}>"
