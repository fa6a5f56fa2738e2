from .base import (
    EVENT_DELETE,
    EVENT_INSERT,
    EVENT_TYPES,
    EVENT_UPDATE,
    ChangeEvent,
    Filters,
    OrderBy,
    RowStoreClient,
    RowStoreError,
    SelectResult,
    Subscription,
)
from .changefeed import ChangeFeed, install_orm_hooks
from .sqlalchemy_store import SQLAlchemyRowStore

__all__ = [
    'EVENT_INSERT', 'EVENT_UPDATE', 'EVENT_DELETE', 'EVENT_TYPES',
    'ChangeEvent', 'Filters', 'OrderBy', 'RowStoreClient', 'RowStoreError',
    'SelectResult', 'Subscription',
    'ChangeFeed', 'install_orm_hooks', 'SQLAlchemyRowStore',
]
