# Routes package init
"""
Catalog Backend: API Routes Package
===================================

Route Inventory:
    - products.py:     GET/POST /api/products, GET/PUT/DELETE /api/products/{id}
    - diagnostics.py:  GET /test-path (asset directory introspection)
                       GET /api/test  (liveness)

Routes stay thin: they pull collaborators from app.state, delegate to
services, and pick the status code.
"""
