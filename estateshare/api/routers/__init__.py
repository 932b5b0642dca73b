"""Router registrations."""

from fastapi import APIRouter

from estateshare.api.routers import (
    auth,
    crowdfunding,
    health,
    payments,
    profile,
    properties,
    voting,
)


def get_api_router() -> APIRouter:
    router = APIRouter()
    router.include_router(health.router, tags=["health"])
    router.include_router(auth.router, prefix="/api/auth", tags=["auth"])
    router.include_router(properties.router, prefix="/api/properties", tags=["properties"])
    router.include_router(crowdfunding.router, prefix="/api/crowdfunding", tags=["crowdfunding"])
    router.include_router(payments.router, prefix="/api/payments", tags=["payments"])
    router.include_router(voting.router, prefix="/api/voting", tags=["voting"])
    router.include_router(profile.router, prefix="/api/profile", tags=["profile"])
    return router
