"""Lobby connectors."""
from .base import BaseLobbyConnector, LobbyConnector
from .http import HttpLobbyConnector
from .memory import InMemoryLobbyConnector

__all__ = [
    'LobbyConnector',
    'BaseLobbyConnector',
    'InMemoryLobbyConnector',
    'HttpLobbyConnector'
]
