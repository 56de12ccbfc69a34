"""
Deadlines Interfaces Layer
==========================

Interface adapters (controllers) for the deadlines module.

This is the outermost layer - handles HTTP requests/responses and
delegates to application services.
"""

from asksync.deadlines.interfaces.controllers import (
    deadlines_router,
    build_recalculation_service,
)

__all__ = ["deadlines_router", "build_recalculation_service"]
