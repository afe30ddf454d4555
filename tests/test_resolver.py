"""Tests for group resolution and the group cache."""

import pytest

from gitlab_tree_migrate.migration.cache import GroupCache
from gitlab_tree_migrate.migration.exceptions import GroupNotFound
from gitlab_tree_migrate.migration.resolver import GroupResolver, encode_path
from gitlab_tree_migrate.models.group import Group


def _group(group_id, full_path, **kwargs):
    path = full_path.rsplit('/', 1)[-1]
    return Group(id=group_id, name=path, path=path, full_path=full_path, **kwargs)


class TestGroupCache:
    """Test the per-run group cache."""

    def test_put_and_get(self):
        """Test groups are keyed on instance URL and full path."""
        cache = GroupCache()
        group = _group(1, 'org/teamA')

        cache.put('https://old.example.com/', group)

        assert cache.get('https://old.example.com', '/org/teamA/') == group
        assert cache.get('https://new.example.com', 'org/teamA') is None
        assert cache.get('https://old.example.com', 'org/teamB') is None

    def test_entries_are_write_once(self):
        """Test a later put keeps the first snapshot."""
        cache = GroupCache()
        first = _group(1, 'org/teamA', description='first')
        second = _group(1, 'org/teamA', description='second')

        cache.put('https://old.example.com', first)
        returned = cache.put('https://old.example.com', second)

        assert returned is first
        assert cache.get('https://old.example.com', 'org/teamA').description == 'first'


class TestGroupResolver:
    """Test group resolution."""

    @pytest.fixture(autouse=True)
    def setup(self, source_gitlab):
        self.gitlab = source_gitlab
        self.cache = GroupCache()
        self.resolver = GroupResolver(self.cache)

    def test_encode_path(self):
        """Test slashes are percent-encoded."""
        assert encode_path('/org/teamA/sub/') == 'org%2FteamA%2Fsub'

    def test_resolve_by_search(self):
        """Test search results are filtered on the exact full path."""
        self.gitlab.add_group('org')
        self.gitlab.add_group('org/teamA')
        self.gitlab.add_group('other')
        self.gitlab.add_group('other/teamA')

        group = self.resolver.resolve(self.gitlab, 'org/teamA')

        assert group.full_path == 'org/teamA'
        assert group.id == self.gitlab.groups['org/teamA']['id']

    def test_search_ignores_partial_matches(self):
        """Test a group sharing only part of the name is not returned."""
        self.gitlab.add_group('org')
        self.gitlab.add_group('org/teamA-archive')

        assert self.resolver.lookup(self.gitlab, 'org/teamA') is None

    def test_falls_back_to_direct_lookup(self):
        """Test a group the search misses is fetched by encoded path."""
        self.gitlab.add_group('org')
        self.gitlab.add_group('org/teamA')
        self.gitlab.group_search_misses.add('org/teamA')

        group = self.resolver.resolve(self.gitlab, 'org/teamA')

        assert group.full_path == 'org/teamA'
        assert self.gitlab.count('GET', '/groups/org%2FteamA') == 1

    def test_resolve_is_memoized(self):
        """Test a resolved group is served from the cache afterwards."""
        self.gitlab.add_group('org')

        first = self.resolver.resolve(self.gitlab, 'org')
        calls = len(self.gitlab.calls)
        second = self.resolver.resolve(self.gitlab, 'org')

        assert second is first
        assert len(self.gitlab.calls) == calls
        assert self.cache.get(self.gitlab.instance_url, 'org') is first

    def test_resolve_missing_group(self):
        """Test an unknown group raises GroupNotFound."""
        with pytest.raises(GroupNotFound) as exc_info:
            self.resolver.resolve(self.gitlab, 'nope/missing')

        assert exc_info.value.subject == 'nope/missing'

    def test_lookup_missing_group_is_not_cached(self):
        """Test a miss is reported as None and not remembered."""
        assert self.resolver.lookup(self.gitlab, 'org') is None

        self.gitlab.add_group('org')

        assert self.resolver.lookup(self.gitlab, 'org') is not None

    def test_instances_sharing_a_url(self, same_url_gitlabs):
        """Test each client queries with its own credentials on a shared URL."""
        source, dest = same_url_gitlabs
        source.add_group('org')
        source.add_group('org/teamA')

        assert self.resolver.lookup(dest, 'org/teamA') is None
        group = self.resolver.resolve(source, 'org/teamA')

        assert group.id == source.groups['org/teamA']['id']
        assert source.count('GET', '/groups') == 1
        assert dest.count('GET', '/groups/org%2FteamA') == 1
