"""Reproduce the source group tree on the destination instance."""

from typing import Optional

from loguru import logger
from pydantic import ValidationError

from ..api.client import GitLabClient
from ..api.exceptions import GitLabAPIError
from ..models.group import Group, GroupCreate
from .exceptions import GroupCreateFailed, ParentGroupMissing
from .resolver import GroupResolver


class GroupReplicator:
    """Ensures destination groups exist, creating missing ones.

    The destination root group must already exist; it is never created.
    Groups that already exist on the destination are returned unchanged.
    """

    def __init__(
        self, resolver: GroupResolver, source_base_url: str, source_root_path: str
    ):
        """Initialize group replicator.

        Args:
            resolver: Resolver whose cache holds the discovered source groups
            source_base_url: Source instance URL, the cache key of those groups
            source_root_path: Source root group path
        """
        self.resolver = resolver
        self.cache = resolver.cache
        self.source_base_url = source_base_url
        self.source_root_path = source_root_path.strip('/')
        self.logger = logger.bind(component='GroupReplicator')

    def ensure_group_path(
        self,
        dest_client: GitLabClient,
        dest_root_path: str,
        relative_path: str,
        source_group: Optional[Group] = None,
    ) -> Group:
        """Return the destination group at ``dest_root_path/relative_path``.

        Missing segments below the root are created top-down with the
        attributes of the matching source group.

        Args:
            dest_client: Client of the destination instance
            dest_root_path: Destination root group path
            relative_path: Group path relative to both roots
            source_group: Source metadata for the last segment; looked up in
                the group cache when omitted

        Raises:
            ParentGroupMissing: If the destination root group does not exist
            GroupCreateFailed: If the destination refuses a group creation
        """
        dest_root_path = dest_root_path.strip('/')
        relative_path = relative_path.strip('/')
        target_path = f'{dest_root_path}/{relative_path}'
        parent_relative, _, segment = relative_path.rpartition('/')

        if parent_relative:
            parent = self.ensure_group_path(
                dest_client, dest_root_path, parent_relative
            )
        else:
            parent = self.resolver.lookup(dest_client, dest_root_path)
            if parent is None:
                raise ParentGroupMissing(
                    f'Parent group {dest_root_path} of {target_path} does not exist '
                    f'on {dest_client.instance_url}',
                    subject=target_path,
                )

        existing = self.resolver.lookup(dest_client, target_path)
        if existing is not None:
            self.logger.debug(f'Group {target_path} already exists')
            return existing

        if source_group is None:
            source_group = self._source_metadata(relative_path)
        return self._create(dest_client, target_path, segment, parent, source_group)

    def _source_metadata(self, relative_path: str) -> Optional[Group]:
        source_path = f'{self.source_root_path}/{relative_path}'
        group = self.cache.get(self.source_base_url, source_path)
        if group is None:
            self.logger.warning(
                f'No cached source group for {source_path}, using derived attributes'
            )
        return group

    def _create(
        self,
        client: GitLabClient,
        target_path: str,
        segment: str,
        parent: Group,
        source_group: Optional[Group],
    ) -> Group:
        try:
            payload = GroupCreate.from_source(segment, parent.id, source_group)
            response = client.post('/groups', data=payload.dict(exclude_none=True))
        except (ValidationError, GitLabAPIError) as e:
            raise GroupCreateFailed(
                f'Failed to create group {target_path}: {e}', subject=target_path
            ) from e

        if not response.success or not isinstance(response.data, dict):
            raise GroupCreateFailed(
                f'Failed to create group {target_path}: {response.data}',
                subject=target_path,
            )

        group = Group.from_api(response.data)
        self.logger.info(f'Created group {group.full_path} (ID: {group.id})')
        return self.cache.put(client.instance_url, group)
