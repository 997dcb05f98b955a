"""
tierdesk
========

Ticket routing, tiered escalation and SLA tracking engine.

Bounded contexts:
- agents: agent registry and routing
- sla: SLA policy table, deadline timers, breach notifications
- tickets: ticket store, escalation engine, command dispatch
"""

__version__ = "1.0.0"
