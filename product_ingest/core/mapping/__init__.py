"""
Row-to-product mapping.
"""

from .field_aliases import DEFAULT_ALIASES, TARGET_FIELDS, AliasConfigLoader
from .product_mapper import ProductMapper, cell_text, coerce_price

__all__ = [
    "ProductMapper",
    "AliasConfigLoader",
    "DEFAULT_ALIASES",
    "TARGET_FIELDS",
    "cell_text",
    "coerce_price",
]
