"""Repository discovery under a source group tree."""

from typing import Dict, List

from loguru import logger
from pydantic import BaseModel, Field

from ..api.client import GitLabClient
from ..models.group import Group
from ..models.repository import Repository
from .resolver import GroupResolver


class DiscoveryResult(BaseModel):
    """Repositories and subgroups found under a root group."""

    root: Group = Field(..., description='Resolved root group')
    repositories: List[Repository] = Field(
        default_factory=list, description='Repositories, unique by source URL'
    )
    subgroups: List[Group] = Field(
        default_factory=list, description='Direct subgroups of the root'
    )


class RepositoryDiscovery:
    """Lists the repositories of a root group and of its direct subgroups.

    Sub-subgroups are not walked: only one level below the root is
    discovered.
    """

    def __init__(self, resolver: GroupResolver):
        self.resolver = resolver
        self.cache = resolver.cache
        self.logger = logger.bind(component='RepositoryDiscovery')

    def discover(
        self, client: GitLabClient, root_group_path: str
    ) -> DiscoveryResult:
        """Discover repositories under ``root_group_path`` on ``client``'s instance.

        Raises:
            GroupNotFound: If the root group cannot be resolved
        """
        root = self.resolver.resolve(client, root_group_path)
        self.logger.info(f'Discovering repositories under {root.full_path}')

        # Keyed by source URL; a later listing overwrites an earlier one
        repositories: Dict[str, Repository] = {}
        self._collect(client, root, repositories)

        subgroups = []
        for group_data in client.get_paginated(f'/groups/{root.id}/subgroups'):
            subgroup = self.cache.put(client.instance_url, Group.from_api(group_data))
            subgroups.append(subgroup)

        for subgroup in subgroups:
            self._collect(client, subgroup, repositories)

        self.logger.info(
            f'Discovered {len(repositories)} repositories in '
            f'{root.full_path} and {len(subgroups)} subgroups'
        )
        return DiscoveryResult(
            root=root,
            repositories=list(repositories.values()),
            subgroups=subgroups,
        )

    def _collect(
        self, client: GitLabClient, group: Group, repositories: Dict[str, Repository]
    ) -> None:
        projects = client.get_paginated(f'/groups/{group.id}/projects')
        self.logger.debug(f'{group.full_path}: {len(projects)} projects')
        for project_data in projects:
            repository = Repository.from_api(project_data)
            repositories[repository.source_url] = repository
