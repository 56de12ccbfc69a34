"""
Deadlines Module
================

Bounded context for expected answer times ("SLA deadlines").

Responsibilities:
- Compute the expected answer time of a question or email attention item
  from its tags and candidate responders
- Keep stored deadlines fresh through targeted and full-sweep
  recalculation, damped by a grace period
- Notify once when a record becomes overdue
"""

__version__ = "1.0.0"
