"""
Ticket Interfaces Layer
========================

HTTP routes and the WebSocket event stream.
"""

from tierdesk.tickets.interfaces.controllers import events_router, get_engine, router

__all__ = ["events_router", "get_engine", "router"]
