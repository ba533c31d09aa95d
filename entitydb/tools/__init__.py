"""
Command-line tools for EntityDB.
"""
