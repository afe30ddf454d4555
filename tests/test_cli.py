"""Tests for CLI interface."""

from datetime import datetime
from unittest.mock import patch
import os
import tempfile

from click.testing import CliRunner

from gitlab_tree_migrate.cli.main import cli, init
from gitlab_tree_migrate.config.config import Config
from gitlab_tree_migrate.migration.exceptions import AuthenticationError, InvalidRepository
from gitlab_tree_migrate.migration.migrator import MigrationOutcome
from gitlab_tree_migrate.migration.orchestrator import MigrationSummary
from gitlab_tree_migrate.migration.state import MigrationStateStore
from gitlab_tree_migrate.models.repository import MigrationRecord, MigrationStatus


def _config():
    return Config(
        source={
            'url': 'https://source.gitlab.com',
            'token': 'source-token',
            'group_path': 'org/teamA',
        },
        destination={
            'url': 'https://dest.gitlab.com',
            'token': 'dest-token',
            'group_path': 'org2/migrated',
        },
    )


def _summary(**kwargs):
    return MigrationSummary(
        total_repositories=2,
        started_at=datetime(2024, 1, 1, 12, 0, 0),
        completed_at=datetime(2024, 1, 1, 12, 5, 0),
        **kwargs,
    )


class TestCLI:
    """Test CLI commands."""

    def setup_method(self):
        """Set up test fixtures."""
        self.runner = CliRunner()

    def test_cli_help(self):
        """Test CLI help command."""
        result = self.runner.invoke(cli, ['--help'])

        assert result.exit_code == 0
        assert 'GitLab Tree Migration Tool' in result.output
        for command in ('init', 'migrate', 'validate', 'status'):
            assert command in result.output

    def test_cli_version(self):
        """Test CLI version command."""
        result = self.runner.invoke(cli, ['--version'])

        assert result.exit_code == 0
        assert '0.1.0' in result.output

    def test_init_command(self):
        """Test init command."""
        with tempfile.TemporaryDirectory() as temp_dir:
            config_path = os.path.join(temp_dir, 'test_config.yaml')

            result = self.runner.invoke(init, ['--output', config_path])

            assert result.exit_code == 0
            assert 'Configuration template created' in result.output
            assert os.path.exists(config_path)

            with open(config_path, 'r') as f:
                content = f.read()
                assert 'source:' in content
                assert 'destination:' in content
                assert 'group_path:' in content

    @patch('gitlab_tree_migrate.cli.main._load_config')
    @patch('gitlab_tree_migrate.cli.main._run_migration')
    def test_migrate_command_success(self, mock_run_migration, mock_load_config):
        """Test successful migrate command."""
        config = _config()
        mock_load_config.return_value = config
        mock_run_migration.return_value = _summary(
            migrated=1,
            skipped=1,
            outcomes=[
                MigrationOutcome(
                    source_url='https://source.gitlab.com/org/teamA/svc1.git',
                    path='org/teamA/svc1',
                    status=MigrationStatus.MIGRATED,
                    warnings=['hidden refs rejected'],
                )
            ],
        )

        result = self.runner.invoke(cli, ['migrate'])

        assert result.exit_code == 0
        assert 'Starting migration process' in result.output
        assert 'Migration Summary' in result.output
        assert 'hidden refs rejected' in result.output
        assert config.migration.dry_run is False
        mock_run_migration.assert_called_once_with(config)

    @patch('gitlab_tree_migrate.cli.main._load_config')
    @patch('gitlab_tree_migrate.cli.main._run_migration')
    def test_migrate_command_dry_run(self, mock_run_migration, mock_load_config):
        """Test migrate command with dry run."""
        config = _config()
        mock_load_config.return_value = config
        mock_run_migration.return_value = _summary(pending=2, dry_run=True)

        result = self.runner.invoke(cli, ['migrate', '--dry-run'])

        assert result.exit_code == 0
        assert 'dry-run mode' in result.output
        assert 'To Transfer' in result.output
        assert config.migration.dry_run is True

    @patch('gitlab_tree_migrate.cli.main._load_config')
    def test_migrate_command_config_not_found(self, mock_load_config):
        """Test migrate command when config is not found."""
        mock_load_config.side_effect = FileNotFoundError('No configuration found')

        result = self.runner.invoke(cli, ['migrate'])

        assert result.exit_code == 1
        assert 'Migration failed' in result.output

    @patch('gitlab_tree_migrate.cli.main._load_config')
    @patch('gitlab_tree_migrate.cli.main._run_migration')
    def test_migrate_command_fatal_error(self, mock_run_migration, mock_load_config):
        """Test a fatal migration error exits non-zero."""
        mock_load_config.return_value = _config()
        mock_run_migration.side_effect = InvalidRepository('Repository x has no id')

        result = self.runner.invoke(cli, ['migrate'])

        assert result.exit_code == 1
        assert 'Repository x has no id' in result.output

    @patch('gitlab_tree_migrate.cli.main._load_config')
    @patch('gitlab_tree_migrate.cli.main.MigrationEngine')
    def test_validate_command_success(self, mock_engine, mock_load_config):
        """Test validate command."""
        mock_load_config.return_value = _config()
        mock_engine.return_value.validate.return_value = {
            'source': 'org/teamA',
            'destination': 'org2/migrated',
        }

        result = self.runner.invoke(cli, ['validate'])

        assert result.exit_code == 0
        assert 'Connectivity validation passed' in result.output
        assert 'org2/migrated' in result.output

    @patch('gitlab_tree_migrate.cli.main._load_config')
    @patch('gitlab_tree_migrate.cli.main.MigrationEngine')
    def test_validate_command_denied(self, mock_engine, mock_load_config):
        """Test validate command with rejected credentials."""
        mock_load_config.return_value = _config()
        mock_engine.return_value.validate.side_effect = AuthenticationError(
            'Access denied'
        )

        result = self.runner.invoke(cli, ['validate'])

        assert result.exit_code == 1
        assert 'Validation failed' in result.output

    def test_status_command(self, tmp_path):
        """Test status command lists persisted records."""
        state_file = tmp_path / 'status.json'
        store = MigrationStateStore(str(state_file))
        migrated = MigrationRecord(
            source_url='https://source.gitlab.com/org/teamA/svc1.git',
            path='org/teamA/svc1',
        )
        migrated.transition(MigrationStatus.MIGRATED)
        failed = MigrationRecord(
            source_url='https://source.gitlab.com/org/teamA/svc2.git',
            path='org/teamA/svc2',
        )
        failed.transition(MigrationStatus.FAILED)
        store.save(migrated)
        store.save(failed)

        result = self.runner.invoke(cli, ['status', '--state-file', str(state_file)])

        assert result.exit_code == 0
        assert 'org/teamA/svc1' in result.output
        assert 'org/teamA/svc2' in result.output
        assert 'migrated: 1' in result.output
        assert 'failed: 1' in result.output

    def test_status_command_no_file(self, tmp_path):
        """Test status command without a status file."""
        result = self.runner.invoke(
            cli, ['status', '--state-file', str(tmp_path / 'missing.json')]
        )

        assert result.exit_code == 0
        assert 'No status file found' in result.output
