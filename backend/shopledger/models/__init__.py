from .masters import Shop, Supplier, Product, ShopProductPrice
from .documents import (
    Purchase,
    PurchaseDetail,
    Delivery,
    DeliveryDetail,
    Rejection,
    RejectionDetail,
    Sequence,
    Counter,
)
from .inventory import Stock, MonthlyStock, Inventory, InventoryDetail
from .sales import Sale, SaleDetail
from .registers import RegisterStatus
from .settings import AppConfig
from .auth import User, Role, UserRole

__all__ = [
    'Shop', 'Supplier', 'Product', 'ShopProductPrice',
    'Purchase', 'PurchaseDetail', 'Delivery', 'DeliveryDetail',
    'Rejection', 'RejectionDetail', 'Sequence', 'Counter',
    'Stock', 'MonthlyStock', 'Inventory', 'InventoryDetail',
    'Sale', 'SaleDetail',
    'RegisterStatus',
    'AppConfig',
    'User', 'Role', 'UserRole',
]
