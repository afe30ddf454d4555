"""Group entity models."""

import re
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, validator

VALID_VISIBILITY = ['private', 'internal', 'public']


class Group(BaseModel):
    """GitLab group model.

    A point-in-time snapshot of a group on one instance. Identity is the
    ``full_path`` on that instance.
    """

    id: int = Field(..., description='Group ID')
    name: str = Field(..., description='Group name')
    path: str = Field(..., description='Group path (last segment)')
    full_path: str = Field(..., description='Full group path with parents')
    description: Optional[str] = Field(default=None, description='Group description')
    parent_id: Optional[int] = Field(default=None, description='Parent group ID')
    visibility: Optional[str] = Field(
        default=None, description='Group visibility (private, internal, public)'
    )
    web_url: Optional[str] = Field(default=None, description='Web URL')

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> 'Group':
        """Build a group from a GitLab API payload, ignoring unknown keys."""
        return cls(**{k: v for k, v in data.items() if k in cls.__fields__})


class GroupCreate(BaseModel):
    """Model for creating a new group."""

    name: str = Field(..., description='Group name')
    path: str = Field(..., description='Group path')
    description: Optional[str] = Field(default='', description='Group description')
    visibility: str = Field(default='private', description='Group visibility')
    parent_id: Optional[int] = Field(default=None, description='Parent group ID')

    @validator('visibility')
    def validate_visibility(cls, v):
        """Validate group visibility."""
        if v not in VALID_VISIBILITY:
            raise ValueError(f'Visibility must be one of: {VALID_VISIBILITY}')
        return v

    @validator('path')
    def validate_path(cls, v):
        """Validate group path format."""
        if not re.match(r'^[a-zA-Z0-9._-]+$', v):
            raise ValueError(
                'Path can only contain alphanumeric characters, dots, dashes, and underscores'
            )
        return v

    @classmethod
    def from_source(
        cls, path: str, parent_id: int, source: Optional[Group] = None
    ) -> 'GroupCreate':
        """Creation payload for ``path`` copying attributes of ``source``.

        Without source metadata the name is derived from the path and the
        description is left empty.
        """
        if source is None:
            return cls(name=path, path=path, description='', parent_id=parent_id)

        return cls(
            name=source.name,
            path=path,
            description=source.description or '',
            visibility=source.visibility or 'private',
            parent_id=parent_id,
        )
