"""
Delphi Oracle Gateway
=====================

FastAPI front end for the Delphi price oracle.

Endpoints:
- GET /: Health check + build info
- GET /health: Kubernetes health check
- GET /public_key: Oracle signing key (register it before relying on it)
- POST /process_data: Resolve and sign a price fact
- /enclaves: Enclave key registry
- POST /verify: Verify a bundle against a registered key
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from gateway.api import enclaves, process_data, verify
from gateway.config import OracleConfig
from gateway.models.responses import HealthResponse, PublicKeyResponse
from gateway.request_router import RequestRouter
from gateway.utils.logger import configure_logging, get_logger
from gateway.utils.registry import EnclaveKeyRegistry
from oracle_tee.enclave_signer import AttestationSigner, load_enclave_keypair
from oracle_tee.price_source import CoinGeckoPriceSource, PriceSource

logger = get_logger(__name__)


def create_app(config: Optional[OracleConfig] = None, price_source: Optional[PriceSource] = None) -> FastAPI:
    """
    Build the gateway application.

    Everything the request path needs (config, keypair, price source, signer,
    registry, router) is constructed here ONCE and hung off ``app.state``.

    Args:
        config: Gateway configuration (defaults to OracleConfig.from_env())
        price_source: Override the CoinGecko source (tests, offline runs)

    Raises:
        ValueError: If the configuration is invalid
        KeyMaterialError: If the configured seed or registry snapshot is corrupt
    """
    config = config or OracleConfig.from_env()
    config.validate()
    configure_logging(config.LOG_LEVEL, config.LOG_JSON)

    keypair = load_enclave_keypair(config.ED25519_SEED)
    if price_source is None:
        price_source = CoinGeckoPriceSource(
            api_key=config.COINGECKO_API_KEY,
            base_url=config.COINGECKO_BASE_URL,
            timeout=config.PRICE_TIMEOUT_SECONDS,
        )
    signer = AttestationSigner(
        keypair=keypair,
        price_source=price_source,
        intent_scope=config.INTENT_SCOPE,
        supported_coins=config.SUPPORTED_COINS,
    )
    registry = EnclaveKeyRegistry(config.REGISTRY_PATH)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("oracle_starting", **config.summary(), public_key=keypair.public_key_hex)
        if keypair.ephemeral:
            logger.warning("ephemeral_key", detail="No ED25519_SEED set; key changes on every restart")
        yield
        logger.info("oracle_stopped")

    app = FastAPI(
        title="Delphi Oracle Gateway",
        description="Signed historical price attestations for prediction markets",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    app.state.config = config
    app.state.keypair = keypair
    app.state.signer = signer
    app.state.registry = registry
    app.state.request_router = RequestRouter(signer)

    # ============================================================
    # Include API Routers
    # ============================================================

    app.include_router(process_data.router)
    app.include_router(enclaves.router)
    app.include_router(verify.router)

    # ============================================================
    # Health Check Endpoints
    # ============================================================

    @app.get("/", response_model=HealthResponse)
    async def root():
        """
        Health check + build info.

        Returns oracle status, build ID, commit hash and the signing key.
        """
        return HealthResponse(
            service="delphi-oracle",
            status="ok",
            build_id=config.BUILD_ID,
            github_commit=config.GITHUB_COMMIT,
            network=config.NETWORK,
            public_key=keypair.public_key_hex,
            timestamp=datetime.now(timezone.utc).isoformat(),
        )

    @app.get("/health")
    async def health():
        """
        Kubernetes health check.

        Simple endpoint for container orchestration health probes.
        """
        return {"status": "healthy"}

    @app.get("/public_key", response_model=PublicKeyResponse)
    async def public_key():
        return PublicKeyResponse(
            public_key=keypair.public_key_hex,
            ephemeral=keypair.ephemeral,
            intent_scope=config.INTENT_SCOPE,
        )

    return app


# ============================================================
# Run Server
# ============================================================

if __name__ == "__main__":
    import uvicorn

    config = OracleConfig.from_env()
    uvicorn.run(
        create_app(config),
        host=config.HOST,
        port=config.PORT,
        log_level=config.LOG_LEVEL.lower(),
    )
