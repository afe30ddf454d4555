"""Group path resolution with memoization."""

from typing import Optional

from loguru import logger

from ..api.client import GitLabClient
from ..models.group import Group
from .cache import GroupCache
from .exceptions import GroupNotFound


def encode_path(full_path: str) -> str:
    """URL-encode a full path for use as a GitLab resource id."""
    return full_path.strip('/').replace('/', '%2F')


class GroupResolver:
    """Resolves group full paths to groups on a GitLab instance.

    The instance is named by the client that queries it, so a source and a
    destination sharing one URL still use their own credentials. Cached
    groups are keyed by ``client.instance_url``.

    Two lookups are tried in order: a name search filtered on exact full
    path, then a direct fetch by encoded path. The search can miss groups
    whose names are not unique; the exact match keeps partial names out.
    """

    def __init__(self, cache: GroupCache):
        self.cache = cache
        self.logger = logger.bind(component='GroupResolver')

    def resolve(self, client: GitLabClient, group_path: str) -> Group:
        """Resolve ``group_path`` on the instance behind ``client``.

        Raises:
            GroupNotFound: If neither lookup finds the group
        """
        group = self.lookup(client, group_path)
        if group is None:
            raise GroupNotFound(
                f'Group {group_path} not found on {client.instance_url}',
                subject=group_path,
            )
        return group

    def lookup(self, client: GitLabClient, group_path: str) -> Optional[Group]:
        """Like ``resolve`` but returns ``None`` when the group does not exist."""
        group_path = group_path.strip('/')

        cached = self.cache.get(client.instance_url, group_path)
        if cached is not None:
            return cached

        group = self._search(client, group_path) or self._fetch(client, group_path)
        if group is None:
            self.logger.debug(f'Group {group_path} not found on {client.instance_url}')
            return None

        return self.cache.put(client.instance_url, group)

    @staticmethod
    def _search(client: GitLabClient, group_path: str) -> Optional[Group]:
        name = group_path.rsplit('/', 1)[-1]
        for group_data in client.get_paginated('/groups', params={'search': name}):
            if group_data.get('full_path') == group_path:
                return Group.from_api(group_data)
        return None

    @staticmethod
    def _fetch(client: GitLabClient, group_path: str) -> Optional[Group]:
        response = client.get_or_none(f'/groups/{encode_path(group_path)}')
        if response is None or not isinstance(response.data, dict):
            return None
        if response.data.get('full_path') != group_path:
            return None
        return Group.from_api(response.data)
