"""HTTP read API for the beacon ledger (FastAPI)."""
