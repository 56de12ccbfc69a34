"""
Availability Interfaces Layer
=============================

Interface adapters (controllers) for the availability module.

This is the outermost layer - handles HTTP requests/responses and
delegates to application services.
"""

from asksync.availability.interfaces.controllers import availability_router, tags_router

__all__ = ["availability_router", "tags_router"]
