"""
Shared Kernel Module
====================

Infrastructure shared by the agents, sla and tickets bounded contexts:
structured logging, the event bus, timeouts/retries and HTTP middleware.

DO NOT add routing, SLA or ticket business rules to the shared kernel.
"""
