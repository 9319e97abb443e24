# Routes package init
"""
Hostel Ledger Backend: API Routes Package
===========================================

Route Inventory:
    - units.py:   GET  /api/iron-borrowing
                  GET  /api/iron-borrowing/{unit_id}
                  POST /api/iron-borrowing/borrow
                  POST /api/iron-borrowing/return
    - health.py:  GET  /health

Routes stay thin: unpack the request, call the ledger, wrap the result.
"""
