"""
Product ingestion pipeline: tabular product files into the product table.
"""

__version__ = "1.0.0"
