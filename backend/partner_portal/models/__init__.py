from .tenancy import Restaurant, Store, StoreMember
from .orders import RestaurantTableOrder, RestaurantOrder, StoreOrder, RestaurantBooking
from .catalogue import StoreCatalogueItem, StockMovement

__all__ = [
    'Restaurant', 'Store', 'StoreMember',
    'RestaurantTableOrder', 'RestaurantOrder', 'StoreOrder', 'RestaurantBooking',
    'StoreCatalogueItem', 'StockMovement',
]
