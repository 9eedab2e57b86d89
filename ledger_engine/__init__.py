"""
Ledger Engine - Source Package

The entry expansion core of a personal-finance tracker. One submitted
entry becomes either a single ledger row, a group of monthly
installments, or a seeded run of recurring occurrences.

DESIGN PRINCIPLES:
1. Validate everything before the first write
2. Amounts are conserved to the cent
3. Every group is linked back to its first entry
4. Partial writes are reported, never hidden
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Ledger Engine Team"
