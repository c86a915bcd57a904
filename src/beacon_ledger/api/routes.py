"""Beacon read endpoints.

Routes
------
- ``GET /``                 API identity and version
- ``GET /health``           liveness and latest id
- ``GET /key``              beacon public key
- ``GET /records/latest``   newest record
- ``GET /records/{id}``     record by id
- ``GET /records``          record by time, ``?before=`` or ``?after=``

Ledger exceptions are mapped to HTTP status codes by the handlers registered
in :func:`register_exception_handlers`.
"""

import logging
from datetime import datetime

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from beacon_ledger import __version__
from beacon_ledger.api.models import HealthResponse, KeyResponse, RecordResponse
from beacon_ledger.core.generator import BeaconGenerator
from beacon_ledger.core.ledger import Ledger
from beacon_ledger.core.records import b64encode
from beacon_ledger.errors import ClosedError, NoRecords, StorageError

logger = logging.getLogger(__name__)


def register_routes(app: FastAPI, ledger: Ledger, generator: BeaconGenerator | None = None) -> None:
    """Register the beacon read endpoints on ``app``, bound to ``ledger``."""

    @app.get("/")
    async def root():
        return {"message": "Beacon Ledger API", "version": __version__}

    @app.get("/health", response_model=HealthResponse)
    def health_check():
        try:
            latest_id: int | None = ledger.latest().id
        except NoRecords:
            latest_id = None
        return HealthResponse(
            status="ok",
            latest_id=latest_id,
            generator_running=generator.is_running if generator else False,
        )

    @app.get("/key", response_model=KeyResponse)
    def public_key():
        return KeyResponse(key=b64encode(ledger.public_key), algorithm=ledger.algorithm)

    @app.get("/records/latest", response_model=RecordResponse)
    def latest_record():
        return RecordResponse.from_record(ledger.latest())

    @app.get("/records/{record_id}", response_model=RecordResponse)
    def record_by_id(record_id: int):
        return RecordResponse.from_record(ledger.select(record_id))

    @app.get("/records", response_model=RecordResponse)
    def record_by_time(
        before: datetime | None = Query(default=None),
        after: datetime | None = Query(default=None),
    ):
        if (before is None) == (after is None):
            raise HTTPException(status_code=400, detail="Pass exactly one of 'before' or 'after'.")
        if before is not None:
            return RecordResponse.from_record(ledger.before(before))
        return RecordResponse.from_record(ledger.after(after))


def register_exception_handlers(app: FastAPI) -> None:
    """Map ledger errors onto HTTP responses."""

    @app.exception_handler(NoRecords)
    async def _no_records(request: Request, exc: NoRecords):
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(ClosedError)
    async def _closed(request: Request, exc: ClosedError):
        return JSONResponse(status_code=503, content={"detail": "Beacon ledger is closed."})

    @app.exception_handler(StorageError)
    async def _storage(request: Request, exc: StorageError):
        logger.error("Storage failure serving %s: %s", request.url.path, exc)
        return JSONResponse(status_code=503, content={"detail": "Beacon storage unavailable."})
