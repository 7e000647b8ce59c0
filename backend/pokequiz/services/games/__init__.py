"""Game domain services: session registry, scoring and round timing.

This package holds the in-memory game logic imported by the Socket.IO
handlers and HTTP routes, keeping transport concerns separated from core
game mechanics.
"""
