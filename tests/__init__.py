"""
EntityDB Test Suite.

This package contains:
- unit/: Unit tests (in-memory SQLite)
- integration/: Integration tests (SQLite files shared by concurrent writers)
"""
