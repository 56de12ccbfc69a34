"""
AskSync Availability & Deadline Engine
=======================================

Expands recurring availability timeblocks, computes when a question or an
email attention item is expected to be answered, and keeps those deadlines
fresh as schedules and tags change.
"""

__version__ = "1.0.0"
