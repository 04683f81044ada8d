"""
Main API router aggregator
"""
from fastapi import APIRouter

from aderm.api.v1.endpoints import (
    audit,
    auth,
    health,
    reports,
    requests,
    upload,
)

api_router = APIRouter()

# All ADERM routes sit directly under /api/v1
api_router.include_router(auth.router)
api_router.include_router(requests.router)
api_router.include_router(upload.router)
api_router.include_router(audit.router)
api_router.include_router(reports.router)
api_router.include_router(health.router)
