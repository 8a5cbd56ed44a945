from .tenancy import School
from .auth import User, SessionToken
from .students import Student, WalletTransaction
from .canteen import CanteenItem, PosOrder, PosOrderItem
from .finance import FeeStructure, Invoice, Payment
from .audit import AuditLog
from .notifications import NotificationOutbox, NotificationPreference, DeviceToken

__all__ = [
    'School',
    'User', 'SessionToken',
    'Student', 'WalletTransaction',
    'CanteenItem', 'PosOrder', 'PosOrderItem',
    'FeeStructure', 'Invoice', 'Payment',
    'AuditLog',
    'NotificationOutbox', 'NotificationPreference', 'DeviceToken',
]
