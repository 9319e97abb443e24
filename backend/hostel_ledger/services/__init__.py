# Services package init
"""
Hostel Ledger Backend: Services Layer
=======================================

Service Inventory:
    - CheckoutLedger (ledger.py): unit pool, checkout/release, summaries
    - UnitStore (store_base.py): abstract load/save contract with retries
    - JsonFileStore (json_store.py): JSON document on disk
    - SqlUnitStore (sql_store.py): async SQLAlchemy `units` table

The ledger receives its store by injection, so tests hand it an in-memory
or temporary store and HTTP handlers receive the ledger the same way.
"""
