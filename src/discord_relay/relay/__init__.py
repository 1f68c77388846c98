"""Relay core — subscriptions, normalization, dispatch.

Learn: Events flow one way:
1. Discord gateway callback → normalizer (raw object → typed RelayEvent)
2. RelayEvent → dispatcher queue → registry lookup
3. Hub broadcast → per-connection outboxes → WebSocket clients

Client-initiated control flow (join/leave) lives in realtime.handler.
"""
