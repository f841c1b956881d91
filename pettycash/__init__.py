"""
Petty Cash Ledger - Source Package

A local-first petty cash ledger for a single user on several devices.

DESIGN PRINCIPLES:
1. Local cache is always written first (optimistic updates)
2. Remote writes are best-effort and never block the caller
3. Remote is the eventual source of truth when signed in
4. Validation happens before any state changes
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Petty Cash Team"
