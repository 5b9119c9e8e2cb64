"""
Middleware Package

Contains application middleware components.
"""

from gemini_bridge.middleware.cors import PermissiveCORSMiddleware

__all__ = ["PermissiveCORSMiddleware"]
