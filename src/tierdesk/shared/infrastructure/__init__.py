"""
Infrastructure Layer
=====================

Low-level technical concerns:
- Logging setup
- In-process event bus
- Timeouts, retries and circuit breaking
"""
