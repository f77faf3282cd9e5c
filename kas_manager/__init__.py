"""
Kas Manager - Source Package

Cash management for a shared house ("kas kontrakan"): resident dues,
income and expense transactions, account balances and a monthly
broadcast summary for the residents' group chat.

DESIGN PRINCIPLES:
1. The hosted backend owns the data, the app keeps session copies
2. Every write is an explicit user action
3. Fail visibly, never silently drop a user's input
4. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Kas Kontrakan Team"
