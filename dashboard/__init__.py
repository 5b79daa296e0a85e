"""
Ledger API - FastAPI backend for the ledger dashboard.

Run with:
    uvicorn dashboard.main:app --port 8000
"""
