"""
GL Kernel - general ledger posting engine.

Turns business events into balanced double-entry transactions with:
- Idempotent posting keyed by (source module, source transaction id)
- Atomic header, entry and balance writes
- Lazy chart-of-accounts provisioning
- Traceable reversals
"""

__version__ = "0.1.0"
