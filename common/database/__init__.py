"""
Database module - async MongoDB connection (Motor).
"""

from common.database.mongodb import MongoDB

__all__ = ["MongoDB"]
