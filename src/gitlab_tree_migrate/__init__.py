"""GitLab Tree Migration Tool

Migrates a group tree of repositories from one GitLab instance to another,
preserving group hierarchy, descriptions and per-repository migration status.
"""

__version__ = '0.1.0'

from .cli.main import main

__all__ = ['main']
