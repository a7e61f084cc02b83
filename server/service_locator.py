"""Service locator for the relay gateway and transfer orchestrator."""

from typing import Optional

from transfer.gateway import RelayGateway
from transfer.orchestrator import TransferOrchestrator

_gateway: Optional[RelayGateway] = None
_orchestrator: Optional[TransferOrchestrator] = None


def set_gateway(gateway: Optional[RelayGateway]):
    """Set global relay gateway instance"""
    global _gateway
    _gateway = gateway


def get_gateway() -> Optional[RelayGateway]:
    """Get global relay gateway instance"""
    return _gateway


def set_orchestrator(orchestrator: Optional[TransferOrchestrator]):
    """Set global transfer orchestrator instance"""
    global _orchestrator
    _orchestrator = orchestrator


def get_orchestrator() -> Optional[TransferOrchestrator]:
    """Get global transfer orchestrator instance"""
    return _orchestrator
