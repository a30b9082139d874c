"""
SQL AI Engine

Turns natural-language questions into safe, read-only SQL, executes it
against SQLite, MySQL or PostgreSQL, and records every attempt.
"""

__version__ = "1.0.0"
