"""
Command-line entry points for roster synchronization.

Subpackages:
- sync: the roster-sync command (members, lifecycle and group jobs)
"""

__version__ = "0.1.0"
