# Services package init
"""
Catalog Backend: Services Layer
===============================

Service Inventory:
    - ProductService: data accessor for the products table (product_service.py)
    - DecisionService: rate-limit / bot verdicts for the admission pipeline
      (decision.py), with remote and local implementations
"""
