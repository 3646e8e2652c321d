from .tenancy import Store, User
from .inventory import Product, PriceTier, Warehouse, WarehouseProduct, StockMovement
from .customers import Member
from .sales import Sale, SaleDetail, Receivable, ReceivablePayment
from .documents import DocumentSequence, DistributionBatch, WarehouseDistribution
from .communications import AuditLog, Notification

__all__ = [
    'Store', 'User',
    'Product', 'PriceTier', 'Warehouse', 'WarehouseProduct', 'StockMovement',
    'Member',
    'Sale', 'SaleDetail', 'Receivable', 'ReceivablePayment',
    'DocumentSequence', 'DistributionBatch', 'WarehouseDistribution',
    'AuditLog', 'Notification',
]
