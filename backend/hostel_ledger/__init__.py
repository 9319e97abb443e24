"""
Hostel Ledger Backend: Application Package
============================================

Layered like this:

    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │     Services (CheckoutLedger)       │  ← unit state + invariants
    ├─────────────────────────────────────┤
    │   Stores (JSON file | SQLAlchemy)   │  ← durable load/save
    └─────────────────────────────────────┘

Schemas (Pydantic) translate between layers; the ledger itself only deals in
Unit/Hold values.
"""

__version__ = "1.0.0"
