import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prospector.config import settings
from prospector.routers import enrichment, health, prospects
from prospector.services.circuit_breaker import CircuitRegistry

logger = logging.getLogger(__name__)


def build_circuit_registry() -> CircuitRegistry:
    registry = CircuitRegistry(settings.circuit_config())
    # Paid APIs trip sooner; a blocked search engine stays open longer
    registry.configure("apollo", failure_threshold=3)
    registry.configure("hunter", failure_threshold=3)
    registry.configure("duckduckgo", open_duration=settings.CIRCUIT_OPEN_SECONDS * 5)
    return registry


app = FastAPI(
    title="Hotel Prospector API",
    version=health.VERSION,
    docs_url="/docs" if settings.ENVIRONMENT != "production" else None,
    redoc_url=None,
)

app.state.circuit_registry = build_circuit_registry()

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    allow_headers=["Authorization", "Content-Type"],
)

app.include_router(prospects.router, prefix="/prospects", tags=["prospects"])
app.include_router(enrichment.router, prefix="/enrichment", tags=["enrichment"])
app.include_router(health.router, tags=["health"])


@app.on_event("startup")
async def _log_enrichment_readiness():
    def state(key: str) -> str:
        return "configured" if key else "not configured (optional)"

    logger.info(
        f"[Enrichment] Claude: {state(settings.ANTHROPIC_API_KEY)} | "
        f"Apollo: {state(settings.APOLLO_API_KEY)} | Hunter: {state(settings.HUNTER_API_KEY)} | "
        f"Places: {state(settings.GOOGLE_PLACES_API_KEY)} | Proxy: {settings.proxy_config().mode.value} | "
        f"Generic fallback: {'allowed' if settings.ALLOW_GENERIC_FALLBACK else 'rejected'}"
    )
    if not settings.ANTHROPIC_API_KEY:
        logger.warning(
            "[Enrichment] ANTHROPIC_API_KEY is empty. Research notes will use the "
            "rule-based fallback only."
        )
    if not settings.HUNTER_API_KEY:
        logger.info("[Enrichment] HUNTER_API_KEY not set, emails are checked by MX lookup only.")
