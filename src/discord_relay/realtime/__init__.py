"""Real-time transport — WebSocket connections, delivery groups, handlers.

Learn: Each WebSocket gets a Connection with its own bounded outbox.
Nothing writes to a socket directly: the hub and the handler push
Envelopes into outboxes, and one writer task per socket drains them.
A slow client therefore only ever loses its own frames.
"""
