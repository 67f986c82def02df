"""
Shipyard Ledger - Source Package

The statement engine behind a shipyard-services company's bookkeeping:
project cash statements built from income/expense lines, monthly partner
compensation statements, and the running balances they close into.

DESIGN PRINCIPLES:
1. Derived figures are computed, never typed in
2. A closed period is frozen
3. Closing moves the balance and the status together or not at all
4. Every step must be auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Shipyard Ledger Team"
