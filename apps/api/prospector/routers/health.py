from fastapi import APIRouter, Depends

from prospector.dependencies import get_circuit_registry
from prospector.services.circuit_breaker import CircuitRegistry

router = APIRouter()

VERSION = "0.1.0"


@router.get("/health")
async def health():
    return {"status": "ok", "version": VERSION}


@router.get("/health/circuits")
async def circuit_health(registry: CircuitRegistry = Depends(get_circuit_registry)):
    """Per-service circuit state plus healthy / degraded / unhealthy buckets."""
    health = registry.health_status()
    return {
        "status": "degraded" if health["unhealthy"] else "ok",
        **health,
        "circuits": {
            service: {**stats.to_dict(), "recommended_delay": registry.recommended_delay(service)}
            for service, stats in registry.all_states().items()
        },
    }
