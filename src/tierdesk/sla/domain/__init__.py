"""
SLA Domain Layer
================

Contains:
- Entities: SLAMetrics
- Value Objects: SLAConfig, SLAPolicy, SLAPolicyTable
- Domain Services: SLACalculator

No infrastructure dependencies.
"""

from tierdesk.sla.domain.entities import SLAMetrics
from tierdesk.sla.domain.value_objects import (
    DEFAULT_SLA_TARGETS,
    SLACalculator,
    SLAConfig,
    SLAPolicy,
    SLAPolicyTable,
)

__all__ = [
    "SLAMetrics",
    "DEFAULT_SLA_TARGETS",
    "SLACalculator",
    "SLAConfig",
    "SLAPolicy",
    "SLAPolicyTable",
]
