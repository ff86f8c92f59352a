"""
Shared SQLAlchemy metadata for worldserver models.

Kept in its own module so database.py and the models never import each other.
"""

from sqlalchemy import MetaData

metadata = MetaData()
