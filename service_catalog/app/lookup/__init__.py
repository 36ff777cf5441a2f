"""
On-demand read path consumed by the presentation layer.
"""

from .service import LookupService

__all__ = ["LookupService"]
