"""
Fuel Kernel - warehouse inventory ledger core

An append-only inventory ledger for fuel trading with:
- Weighted-average cost per warehouse and product
- Atomic stock update plus ledger entry per movement
- Explicit reversal entries instead of history edits
- Price validity overlap checking
- Deal volume aggregation per price scope
"""

__version__ = "0.1.0"
