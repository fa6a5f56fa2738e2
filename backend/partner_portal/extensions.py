# Overview: Flask extension instances and the per-app realtime wiring (change feed + row store).

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

db = SQLAlchemy()
migrate = Migrate()


def init_realtime(app):
    """
    One change feed per app; row store writes and ORM commits both publish to it.

    Registers app.extensions["change_feed"] and app.extensions["row_store"].
    """
    from .rowstore import ChangeFeed, SQLAlchemyRowStore, install_orm_hooks

    feed = ChangeFeed()
    app.extensions["change_feed"] = feed
    app.extensions["row_store"] = SQLAlchemyRowStore(db, feed)
    install_orm_hooks()
    return feed
