"""Authentication.

Learn: Clients carry a JWT issued elsewhere (the login flow is not part of
the relay). The same token authenticates both paths:
1. WebSocket connections → ?token= query param or Bearer header
2. HTTP API calls → Authorization: Bearer header

Both resolve to a Principal (discord id + username + display name).
"""
