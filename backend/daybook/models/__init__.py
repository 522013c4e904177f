from .registers import Register
from .ledger import CashMovement, Transaction, Expense, CashClosing

__all__ = [
    'Register',
    'CashMovement', 'Transaction', 'Expense', 'CashClosing',
]
