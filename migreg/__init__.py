"""
migreg - appointment slot scheduling for a migration-registration office.
"""

__version__ = "0.1.0"
