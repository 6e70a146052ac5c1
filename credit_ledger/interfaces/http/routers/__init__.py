from fastapi import APIRouter

from . import admin, cash_requests, loans, wallets


def create_api_router(prefix: str = "") -> APIRouter:
    router = APIRouter(prefix=prefix)
    router.include_router(wallets.router, prefix="/wallets", tags=["wallets"])
    router.include_router(cash_requests.router, prefix="/cash-requests", tags=["cash requests"])
    router.include_router(loans.router, prefix="/loans", tags=["loans"])
    router.include_router(admin.router, prefix="/admin", tags=["admin"])
    return router


__all__ = [
    "create_api_router",
]
