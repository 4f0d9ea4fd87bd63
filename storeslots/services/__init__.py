"""
Service layer helpers that orchestrate adapters and domain logic.
"""

from .booking import BookingService, SchedulingGatewayProtocol

__all__ = ["BookingService", "SchedulingGatewayProtocol"]
