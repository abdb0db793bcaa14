"""Claims backend package.

This package is intentionally lightweight so it can sit behind the daily claims
screen or run standalone via Uvicorn:

    python -m uvicorn claims_backend.api_app:app --host 127.0.0.1 --port 8000
"""
