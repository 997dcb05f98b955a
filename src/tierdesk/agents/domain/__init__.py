"""
Agent Domain Layer
==================

Contains:
- Entities: Agent

No infrastructure dependencies.
"""

from tierdesk.agents.domain.entities import Agent, normalize_specialties

__all__ = ["Agent", "normalize_specialties"]
