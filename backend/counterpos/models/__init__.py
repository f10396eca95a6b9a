from .catalog import Product
from .customers import Customer, CUSTOMER_TYPES
from .invoices import Invoice, InvoiceLine, InvoicePayment, INVOICE_STATUSES, PAYMENT_METHODS
from .inventory import InventoryAdjustment, ADJUSTMENT_TYPES
from .auth import User, RolePermission, SessionToken, STAFF_ROLES, STAFF_STATUSES

__all__ = [
    'Product',
    'Customer', 'CUSTOMER_TYPES',
    'Invoice', 'InvoiceLine', 'InvoicePayment', 'INVOICE_STATUSES', 'PAYMENT_METHODS',
    'InventoryAdjustment', 'ADJUSTMENT_TYPES',
    'User', 'RolePermission', 'SessionToken', 'STAFF_ROLES', 'STAFF_STATUSES',
]
