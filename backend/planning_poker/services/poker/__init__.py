"""Planning poker domain services: room coordination, voting and timers.

Pure in-memory logic imported by the Socket.IO handlers and HTTP routes,
keeping transport concerns separated from room state.
"""
from .coordinator import Outbound, Reply, RoomCoordinator

__all__ = ['Outbound', 'Reply', 'RoomCoordinator']
