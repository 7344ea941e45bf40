from .sales import Sale, SaleItem, SaleReceipt
from .goals import SalesGoal, CashierGoal, GOAL_TYPES, GOAL_PERIODS
from .users import User, UserStore, USER_ROLES

__all__ = [
    'Sale', 'SaleItem', 'SaleReceipt',
    'SalesGoal', 'CashierGoal', 'GOAL_TYPES', 'GOAL_PERIODS',
    'User', 'UserStore', 'USER_ROLES',
]
