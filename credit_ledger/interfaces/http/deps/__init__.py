"""Reusable FastAPI dependencies."""

from fastapi import Depends, Request

from credit_ledger.core.container import ApplicationContainer
from credit_ledger.domain.ledger import Ledger


def get_container(request: Request) -> ApplicationContainer:
    return request.app.state.container


def get_ledger(container: ApplicationContainer = Depends(get_container)) -> Ledger:
    return container.ledger


__all__ = [
    "get_container",
    "get_ledger",
]
