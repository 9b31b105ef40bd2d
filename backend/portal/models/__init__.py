from .auth import User, SessionToken
from .inventory import InventoryItem, InventoryHistory, ProductCost
from .imports import ImportBatch, ImportStagingRow
from .finance import FixedCost, PayrollRecord
from .tasks import Task, NotificationCursor

__all__ = [
    'User', 'SessionToken',
    'InventoryItem', 'InventoryHistory', 'ProductCost',
    'ImportBatch', 'ImportStagingRow',
    'FixedCost', 'PayrollRecord',
    'Task', 'NotificationCursor',
]
