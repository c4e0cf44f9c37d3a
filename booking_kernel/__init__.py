"""
Booking Kernel - resource allocation and inventory ledger core

Decides whether a resource can be committed to an event without violating
its physical constraints:
- Exclusive resources: no overlapping bookings
- Shareable resources: concurrent usage capped
- Consumable resources: time-aware, ledger-derived balances
- Per-resource serialization of every admission check and write
"""

__version__ = "0.1.0"
