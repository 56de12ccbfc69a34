"""
Availability Module
===================

Bounded context for committed availability ("timeblocks").

Responsibilities:
- Expand recurring timeblocks (daily, weekly, weekdays) into occurrences
- Answer "is this responder available now / in this window" queries
- Filter timeblocks by viewer permissions for display
- Handle timeblock and tag mutations and trigger dependent deadline
  recalculation
"""

__version__ = "1.0.0"
