"""Shared fixtures: in-memory GitLab instances and a fake transfer."""

import re
from collections import defaultdict
from typing import Any, Dict, List, Optional

import pytest

from gitlab_tree_migrate.api.client import APIResponse, GitLabClient
from gitlab_tree_migrate.api.exceptions import (
    GitLabAPIError,
    GitLabNotFoundError,
    GitLabValidationError,
)
from gitlab_tree_migrate.config.config import GitLabInstanceConfig
from gitlab_tree_migrate.git.transfer import TransferResult

SOURCE_URL = 'https://old.example.com'
DEST_URL = 'https://new.example.com'


def _response(data: Any, status_code: int = 200) -> APIResponse:
    return APIResponse(
        status_code=status_code,
        data=data,
        headers={},
        success=200 <= status_code < 300,
    )


class FakeGitLab(GitLabClient):
    """GitLab instance kept in dictionaries, speaking the client interface."""

    def __init__(self, url: str):
        self.config = GitLabInstanceConfig(url=url, token='test-token')
        self.groups: Dict[str, Dict[str, Any]] = {}
        self.projects: Dict[str, Dict[str, Any]] = {}
        self.calls: List[tuple] = []
        self.extra_listings: Dict[str, List[Dict[str, Any]]] = defaultdict(list)

        self.group_search_misses = set()
        self.project_search_misses: Dict[str, int] = {}
        self.fail_group_create = False
        self.fail_description_update = False
        self.closed = False
        self._next_id = 100

    # Test setup helpers

    def _new_id(self) -> int:
        self._next_id += 1
        return self._next_id

    def add_group(
        self,
        full_path: str,
        name: Optional[str] = None,
        description: str = '',
        visibility: str = 'private',
    ) -> Dict[str, Any]:
        parent_path, _, path = full_path.rpartition('/')
        parent = self.groups.get(parent_path)
        data = {
            'id': self._new_id(),
            'name': name or path,
            'path': path,
            'full_path': full_path,
            'description': description,
            'parent_id': parent['id'] if parent else None,
            'visibility': visibility,
        }
        self.groups[full_path] = data
        return data

    def add_project(
        self,
        path_with_namespace: str,
        description: Optional[str] = None,
        project_id: Optional[int] = -1,
    ) -> Dict[str, Any]:
        namespace, _, path = path_with_namespace.rpartition('/')
        data = {
            'id': self._new_id() if project_id == -1 else project_id,
            'name': path,
            'path': path,
            'path_with_namespace': path_with_namespace,
            'description': description,
            'http_url_to_repo': f'{self.config.url}/{path_with_namespace}.git',
            'namespace': {'full_path': namespace},
        }
        self.projects[path_with_namespace] = data
        return data

    def close(self):
        self.closed = True

    # Client interface

    def get_version(self) -> Optional[str]:
        self.calls.append(('GET', '/version', None))
        return '16.0.0'

    def get(self, endpoint: str, params=None, **kwargs) -> APIResponse:
        self.calls.append(('GET', endpoint, params))
        if endpoint.startswith('/groups/'):
            key = endpoint[len('/groups/'):].replace('%2F', '/')
            group = self._group(key)
            if group is not None:
                return _response(group)
        raise GitLabNotFoundError('Resource not found', status_code=404)

    def get_paginated(self, endpoint: str, params=None, per_page: int = 100):
        self.calls.append(('GET', endpoint, params))
        params = params or {}

        if endpoint == '/groups':
            search = params.get('search', '')
            return [
                g
                for g in self.groups.values()
                if search in g['path'] and g['full_path'] not in self.group_search_misses
            ]

        if endpoint == '/projects':
            search = params.get('search', '')
            found = []
            for p in self.projects.values():
                if search not in p['path']:
                    continue
                misses = self.project_search_misses.get(p['path_with_namespace'], 0)
                if misses:
                    self.project_search_misses[p['path_with_namespace']] = misses - 1
                    continue
                found.append(p)
            return found

        match = re.match(r'^/groups/(\d+)/(projects|subgroups)$', endpoint)
        if match:
            group = self._group(match.group(1))
            if group is None:
                raise GitLabNotFoundError('Resource not found', status_code=404)
            if match.group(2) == 'subgroups':
                return [g for g in self.groups.values() if g['parent_id'] == group['id']]
            listed = [
                p
                for p in self.projects.values()
                if p['namespace']['full_path'] == group['full_path']
            ]
            return listed + self.extra_listings[group['full_path']]

        raise GitLabNotFoundError('Resource not found', status_code=404)

    def post(self, endpoint: str, data=None, **kwargs) -> APIResponse:
        self.calls.append(('POST', endpoint, data))
        if endpoint != '/groups':
            raise GitLabNotFoundError('Resource not found', status_code=404)
        if self.fail_group_create:
            raise GitLabValidationError(
                'API request failed: has already been taken', status_code=400
            )

        parent = self._group(str(data['parent_id'])) if data.get('parent_id') else None
        full_path = f"{parent['full_path']}/{data['path']}" if parent else data['path']
        group = self.add_group(
            full_path,
            name=data['name'],
            description=data.get('description', ''),
            visibility=data.get('visibility', 'private'),
        )
        return _response(group, 201)

    def put(self, endpoint: str, data=None, **kwargs) -> APIResponse:
        self.calls.append(('PUT', endpoint, data))
        if self.fail_description_update:
            raise GitLabAPIError('API request failed: boom', status_code=500)

        project_id = int(endpoint.rsplit('/', 1)[-1])
        for project in self.projects.values():
            if project['id'] == project_id:
                project.update(data)
                return _response(project)
        raise GitLabNotFoundError('Resource not found', status_code=404)

    def _group(self, key: str) -> Optional[Dict[str, Any]]:
        if key.isdigit():
            for group in self.groups.values():
                if group['id'] == int(key):
                    return group
            return None
        return self.groups.get(key)

    def count(self, method: str, endpoint: str) -> int:
        return sum(1 for c in self.calls if c[0] == method and c[1] == endpoint)


class FakeTransfer:
    """Records transfers and creates the pushed project on the destination."""

    def __init__(self, destination: FakeGitLab):
        self.destination = destination
        self.calls: List[tuple] = []
        self.result = TransferResult(ok=True)
        self.create_project = True

    def transfer(self, source_url: str, dest_url: str) -> TransferResult:
        self.calls.append((source_url, dest_url))
        if self.create_project and (self.result.ok or self.result.rejected_hidden_ref):
            path = dest_url[len(self.destination.config.url) + 1:]
            if path.endswith('.git'):
                path = path[: -len('.git')]
            self.destination.add_project(path)
        return self.result


@pytest.fixture
def source_gitlab():
    return FakeGitLab(SOURCE_URL)


@pytest.fixture
def dest_gitlab():
    return FakeGitLab(DEST_URL)


@pytest.fixture
def transfer(dest_gitlab):
    return FakeTransfer(dest_gitlab)


@pytest.fixture
def scenario(source_gitlab, dest_gitlab):
    """``org/teamA`` with ``svc1`` and ``sub/svc2``; destination ``org2/migrated``."""
    source_gitlab.add_group('org')
    source_gitlab.add_group('org/teamA', name='Team A', description='Team A repos')
    source_gitlab.add_group(
        'org/teamA/sub', name='Sub Team', description='Sub team repos'
    )
    source_gitlab.add_project('org/teamA/svc1', description='Service one')
    source_gitlab.add_project('org/teamA/sub/svc2', description='Service two')

    dest_gitlab.add_group('org2')
    dest_gitlab.add_group('org2/migrated')
    return source_gitlab, dest_gitlab


@pytest.fixture
def same_url_gitlabs():
    """Source and destination roles on one URL with separate contents."""
    return FakeGitLab('https://gl.example.com'), FakeGitLab('https://gl.example.com')


@pytest.fixture
def same_url_transfer(same_url_gitlabs):
    return FakeTransfer(same_url_gitlabs[1])
