"""
DealFinder-Agent - conversation compaction and shopping personas.
"""

__version__ = "0.1.0"
