"""
Ordered category encoding: labels to ranks 1..K plus the cumulative indicator design.
"""

from .encoder import EncodedCategories, encode_categories, resolve_levels

__all__ = ["EncodedCategories", "encode_categories", "resolve_levels"]
