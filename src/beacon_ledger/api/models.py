"""
Pydantic models for beacon API responses.

Binary record fields are standard base64 strings and times are ISO-8601 UTC,
exactly as :meth:`beacon_ledger.core.records.Record.to_dict` produces them.
"""

from datetime import datetime

from pydantic import BaseModel

from beacon_ledger.core.records import Record


class RecordResponse(BaseModel):
    """
    One beacon record.

    Attributes:
        id: Gapless sequence number starting at 1
        bits: Base64 entropy payload
        time: Append time (UTC)
        hash: Base64 SHA-256 link hash
        signature: Base64 signature over bits || hash
    """

    id: int
    bits: str
    time: datetime
    hash: str
    signature: str

    @classmethod
    def from_record(cls, record: Record) -> "RecordResponse":
        return cls(**record.to_dict())


class KeyResponse(BaseModel):
    """Beacon public key (base64 DER SubjectPublicKeyInfo) and algorithm."""

    key: str
    algorithm: str


class HealthResponse(BaseModel):
    """Liveness check with the current chain tip."""

    status: str
    latest_id: int | None
    generator_running: bool
