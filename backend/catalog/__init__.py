"""
Catalog Backend: Application Package
====================================

What: Product catalog REST API with an admission pipeline and SPA hosting.
Who:  Imported by uvicorn (`catalog.main:create_app`), pytest, and `python -m catalog`.

Architecture Note:

    ┌─────────────────────────────────────┐
    │     Admission Pipeline (stages)     │  ← body, CORS, headers, log, decision
    ├─────────────────────────────────────┤
    │   Routes (API) │ Static dispatcher  │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │      Services (Data Accessor)       │  ← validation, statements
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │     Database (store client)         │  ← Async SQLAlchemy engine
    └─────────────────────────────────────┘
"""

__version__ = "1.0.0"
