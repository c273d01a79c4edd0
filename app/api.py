"""HTTP route definitions for the service."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from app.schemas import HealthStatus, Sample
from datastore.samples import SampleStore, StoreFailure, build_default_store

router = APIRouter()


def get_store() -> SampleStore:
    return build_default_store()


@router.get(
    "/occupancy",
    response_model=list[Sample],
    summary="Full occupancy history, newest sample first.",
)
async def list_occupancy(
    store: SampleStore = Depends(get_store),
) -> list[Sample]:
    try:
        return store.list_samples()
    except StoreFailure as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(exc),
        ) from exc


@router.get(
    "/health",
    response_model=HealthStatus,
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> HealthStatus:
    return HealthStatus()


@router.get(
    "/",
    response_model=HealthStatus,
    summary="Root endpoint mirrors health information.",
    status_code=status.HTTP_200_OK,
)
async def root() -> HealthStatus:
    return HealthStatus(detail="See /occupancy for the recorded history.")
