"""Relay session status routes."""

from fastapi import APIRouter

from server.schemas.transfer import RelayStatusResponse
from server.service_locator import get_gateway

router = APIRouter(prefix="/relay", tags=["Relay"])


@router.get("/status", response_model=RelayStatusResponse)
async def relay_status():
    """
    Report whether the relay session is initialized and authenticated.
    """
    gateway = get_gateway()
    if gateway is None:
        return RelayStatusResponse(initialized=False, authenticated=False)
    return RelayStatusResponse(**gateway.status())
