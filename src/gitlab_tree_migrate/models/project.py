"""Project entity models."""

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class Project(BaseModel):
    """Destination-side GitLab project snapshot."""

    id: int = Field(..., description='Project ID')
    name: str = Field(..., description='Project name')
    path: str = Field(..., description='Project path')
    path_with_namespace: str = Field(..., description='Full project path')
    description: Optional[str] = Field(default=None, description='Project description')
    http_url_to_repo: Optional[str] = Field(default=None, description='HTTP clone URL')
    web_url: Optional[str] = Field(default=None, description='Web URL')

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> 'Project':
        """Build a project from a GitLab API payload, ignoring unknown keys."""
        return cls(**{k: v for k, v in data.items() if k in cls.__fields__})


class ProjectUpdate(BaseModel):
    """Model for updating an existing project."""

    description: Optional[str] = Field(default=None, description='Project description')
