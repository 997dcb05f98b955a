"""
Tickets Module
==============

Bounded context for the ticket lifecycle.

Responsibilities:
- Ticket store with optimistic versioning and indexed queries
- Escalation engine: status and tier state machines, routing, SLA breaches
- Per-ticket ordered command dispatch
- HTTP API and event stream
"""
