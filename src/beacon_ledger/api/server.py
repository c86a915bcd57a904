"""
FastAPI server for the beacon ledger.

This module builds the FastAPI application that publishes beacon records:
- The ledger instance that all read endpoints query
- An optional background generator appending one record per interval
- Exception handlers mapping ledger errors onto HTTP status codes

The generator, when present, is started and stopped with the application
lifespan so that a test client or uvicorn worker owns its thread.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from beacon_ledger import __version__
from beacon_ledger.api.routes import register_exception_handlers, register_routes
from beacon_ledger.config import BeaconConfig, config
from beacon_ledger.core.entropy import EntropySource, StreamEntropySource, SystemEntropySource
from beacon_ledger.core.generator import BeaconGenerator
from beacon_ledger.core.ledger import Ledger
from beacon_ledger.core.signing import load_signer
from beacon_ledger.errors import BeaconError

logger = logging.getLogger(__name__)


def create_app(ledger: Ledger, generator: BeaconGenerator | None = None) -> FastAPI:
    """
    Create the beacon API application.

    Args:
        ledger: Open ledger served by the read endpoints.
        generator: Optional periodic appender tied to the app lifespan.

    Returns:
        Configured FastAPI application.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if generator is not None:
            generator.start()
        try:
            yield
        finally:
            if generator is not None:
                generator.stop()

    app = FastAPI(title="Beacon Ledger", version=__version__, lifespan=lifespan)
    register_routes(app, ledger, generator)
    register_exception_handlers(app)
    return app


def build_ledger(cfg: BeaconConfig | None = None) -> Ledger:
    """
    Open the configured ledger with the configured key and entropy source.

    Entropy comes from ``beacon.entropy_path`` when set, otherwise from the
    OS CSPRNG.

    Raises:
        OSError: If the key file or entropy device cannot be opened.
        ValueError: If the key file holds an unsupported key.
        OpenError: If the storage location cannot be opened.
    """
    cfg = cfg or config
    signer = load_signer(cfg.beacon.absolute_key_path)

    entropy_path = cfg.beacon.absolute_entropy_path
    entropy: EntropySource
    if entropy_path is not None:
        entropy = StreamEntropySource.from_path(entropy_path)
        logger.info("Reading entropy from %s", entropy_path)
    else:
        entropy = SystemEntropySource()

    try:
        return Ledger.open(
            cfg.storage.resolved_location,
            signer,
            entropy,
            bits_length=cfg.beacon.bits_length,
        )
    except BeaconError:
        if isinstance(entropy, StreamEntropySource):
            entropy.close()
        raise


def start_server(
    host: str | None = None,
    port: int | None = None,
    interval_seconds: float | None = None,
) -> None:
    """
    Serve the beacon API with uvicorn until interrupted.

    Arguments left as ``None`` fall back to the loaded configuration.
    """
    import uvicorn

    host = host or config.server.host
    port = port or config.server.port
    interval = interval_seconds or config.beacon.interval_seconds

    ledger = build_ledger()
    generator = BeaconGenerator(
        ledger,
        interval_seconds=interval,
        max_attempts=config.beacon.max_append_attempts,
    )
    app = create_app(ledger, generator)

    logger.info("Serving beacon on %s:%d (interval %.1fs)", host, port, interval)
    try:
        uvicorn.run(app, host=host, port=port, log_config=None)
    finally:
        ledger.close()
