"""
GET /health: load balancer health check endpoint.

No authentication required. Returns DB connectivity status.
"""
from fastapi import APIRouter
from pydantic import BaseModel

from citycare.core.db import check_db_connection

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    status: str
    db: str


class BannerResponse(BaseModel):
    status: str
    message: str


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    db_ok = await check_db_connection()
    return HealthResponse(
        status="ok",
        db="ok" if db_ok else "error",
    )


@router.get("/", response_model=BannerResponse, include_in_schema=False)
async def banner() -> BannerResponse:
    return BannerResponse(status="ok", message="CityCare Backend")
