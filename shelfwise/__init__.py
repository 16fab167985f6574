"""
Shelfwise: book import and reconciliation for a personal library tracker.
"""

__version__ = "0.1.0"
