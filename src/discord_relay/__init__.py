"""Discord Relay — real-time fan-out of Discord channel events.

Relays messages created, edited and deleted in Discord guild text channels
to authenticated WebSocket clients, scoped to the channels each client has
explicitly joined.
"""

__version__ = "0.1.0"
