"""Data models for GitLab entities."""

from .group import Group, GroupCreate
from .project import Project, ProjectUpdate
from .repository import MigrationRecord, MigrationStatus, Repository

__all__ = [
    'Group',
    'GroupCreate',
    'Project',
    'ProjectUpdate',
    'Repository',
    'MigrationRecord',
    'MigrationStatus',
]
