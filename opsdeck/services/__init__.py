"""
Use cases that sit above the repository.

Routers and scripts call these services instead of manipulating the store
directly.
"""

from .backup_service import BackupService, backup_filename, parse_backup

__all__ = ["BackupService", "backup_filename", "parse_backup"]
