from .auth import User, PageAccess, UnitAccess, SessionToken
from .units import Unit, Product, PaymentType
from .sales import Sale
from .expenses import Expense, ExpenseImage, EXPENSE_CATEGORIES
from .planning import BusinessPlan
from .security import SecurityEvent

__all__ = [
    'User', 'PageAccess', 'UnitAccess', 'SessionToken',
    'Unit', 'Product', 'PaymentType',
    'Sale',
    'Expense', 'ExpenseImage', 'EXPENSE_CATEGORIES',
    'BusinessPlan',
    'SecurityEvent',
]
