"""
Shared API Layer
=================

Middleware, exception handlers and dependencies used by every router.
"""
