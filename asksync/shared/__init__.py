"""
Shared Kernel Module
====================

Shared infrastructure used across the bounded contexts (availability and
deadlines): structured logging, HTTP middleware.

DO NOT add availability or deadline business logic to the shared kernel.
"""

__version__ = "1.0.0"
