"""
Agent Interfaces Layer
=======================

HTTP routes for agents.
"""

from tierdesk.agents.interfaces.controllers import router

__all__ = ["router"]
