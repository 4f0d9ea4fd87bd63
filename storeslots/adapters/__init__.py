"""
Adapters layer - Scheduling backend integrations.
"""

from .memory_gateway import InMemorySchedulingGateway
from .rest_gateway import RestSchedulingGateway

__all__ = ["InMemorySchedulingGateway", "RestSchedulingGateway"]
