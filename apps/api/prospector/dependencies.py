from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession
from prospector.database import AsyncSessionLocal
from prospector.services.circuit_breaker import CircuitRegistry


async def get_db() -> AsyncSession:
    async with AsyncSessionLocal() as session:
        yield session


def get_circuit_registry(request: Request) -> CircuitRegistry:
    return request.app.state.circuit_registry
