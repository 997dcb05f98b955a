"""
Agents Module
=============

Bounded context for support agents.

Responsibilities:
- Agent registry: identity, tier, specialties, presence, load vs. capacity
- Atomic capacity reservation and release
- Routing: ranking eligible agents for a ticket
"""
