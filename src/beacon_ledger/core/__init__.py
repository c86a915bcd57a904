"""Beacon core: record model, chain builder, signers, entropy and the ledger.

Import concrete names from their modules (``beacon_ledger.core.ledger``,
``beacon_ledger.core.chain`` …); this package does not re-export them so the
storage layer can depend on ``core.records`` without import cycles.
"""
