"""
immomatch: matching comprador-listing y popularidad de listings.
"""

__version__ = "0.1.0"
