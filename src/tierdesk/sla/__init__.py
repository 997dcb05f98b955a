"""
SLA Module
==========

Bounded context for service level agreements.

Responsibilities:
- Static priority -> response/resolution policy table (YAML)
- Deadline timers feeding breach commands to the escalation engine
- Periodic sweep re-delivering overdue breaches (at-least-once)
- Slack notification on breach
- SLA metrics view per ticket
"""
