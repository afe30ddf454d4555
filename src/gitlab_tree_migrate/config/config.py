"""Settings for a group tree migration, loaded from YAML or the environment."""

from typing import Optional, Dict, Any, List
from pathlib import Path
import os

from pydantic import BaseModel, Field, root_validator, validator
import yaml
from dotenv import load_dotenv


class GitLabInstanceConfig(BaseModel):
    """One GitLab instance: where it is, how to log in, which root group."""

    url: str = Field(..., description='Instance base URL')
    token: Optional[str] = Field(default=None, description='Personal access token')
    oauth_token: Optional[str] = Field(default=None, description='OAuth access token')
    group_path: str = Field(
        default='',
        alias='groupPath',
        description='Full path of the root group to migrate from/into',
    )
    api_version: str = Field(default='v4', description='REST API version')
    timeout: int = Field(default=30, description='HTTP timeout in seconds')
    rate_limit_per_second: float = Field(
        default=10.0, description='Upper bound on API calls per second'
    )

    class Config:
        populate_by_name = True

    @validator('url')
    def validate_url(cls, v):
        if not v.startswith(('http://', 'https://')):
            raise ValueError('URL must start with http:// or https://')
        return v.rstrip('/')

    @validator('group_path')
    def validate_group_path(cls, v):
        return v.strip().strip('/')

    @validator('oauth_token', always=True)
    def validate_auth_complete(cls, v, values):
        """A personal or an OAuth token is required."""
        if not values.get('token') and not v:
            raise ValueError('Either token or oauth_token must be provided')
        return v

    @validator('rate_limit_per_second')
    def validate_rate_limit(cls, v):
        if v <= 0:
            raise ValueError('Rate limit must be positive')
        return v


class MigrationConfig(BaseModel):
    """What to migrate and how to confirm it."""

    skip_repos: List[str] = Field(
        default_factory=list, description='Repository short names to skip'
    )
    strip_prefix: Optional[str] = Field(
        default=None,
        description=(
            'Legacy namespace prefix stripped from source repository paths. '
            'Defaults to the source group path followed by a slash.'
        ),
    )
    state_file: str = Field(
        default='migration_status.json',
        description='Path of the persisted repository status list',
    )
    verify_attempts: int = Field(
        default=3, description='Destination existence checks after a transfer'
    )
    verify_backoff: float = Field(
        default=5.0, description='Seconds multiplied by the attempt number'
    )
    dry_run: bool = Field(default=False, description='Report the plan, change nothing')

    @validator('skip_repos', pre=True)
    def validate_skip_repos(cls, v):
        """Accept a comma separated string as well as a list."""
        if v is None:
            return []
        if isinstance(v, str):
            return [item.strip() for item in v.split(',') if item.strip()]
        return v

    @validator('verify_attempts')
    def validate_verify_attempts(cls, v):
        if v <= 0:
            raise ValueError('Verification attempts must be positive')
        return v

    @validator('verify_backoff')
    def validate_verify_backoff(cls, v):
        if v < 0:
            raise ValueError('Verification backoff cannot be negative')
        return v


class GitConfig(BaseModel):
    """Settings of the local git mirror used for transfers."""

    temp_dir: Optional[str] = Field(
        default=None,
        description='Parent directory of mirror clones; the system default when unset',
    )
    timeout: int = Field(default=3600, description='Limit per git command in seconds')
    cleanup_temp: bool = Field(
        default=True, description='Remove the mirror clone after each transfer'
    )
    lfs_enabled: bool = Field(
        default=False, description='Transfer Git LFS objects as well'
    )
    ssl_verify: bool = Field(
        default=True, description='Verify TLS certificates for git operations'
    )

    @validator('temp_dir')
    def validate_temp_dir(cls, v):
        """The directory must be absolute; it is created when missing."""
        if v is not None:
            temp_path = Path(v)
            if not temp_path.is_absolute():
                raise ValueError('temp_dir must be an absolute path')
            temp_path.mkdir(parents=True, exist_ok=True)
            if not temp_path.is_dir():
                raise ValueError(f'temp_dir path is not a directory: {v}')
        return v

    @validator('timeout')
    def validate_timeout(cls, v):
        if v <= 0:
            raise ValueError('Git timeout must be positive')
        return v


class LoggingConfig(BaseModel):
    """Log sinks and verbosity."""

    level: str = Field(default='INFO', description='Console log level')
    file: Optional[str] = Field(default=None, description='Run log file path')
    error_file: Optional[str] = Field(
        default=None, description='Error log file path'
    )
    format: Optional[str] = Field(default=None, description='Console log format')

    @validator('level')
    def validate_log_level(cls, v):
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f'Log level must be one of: {valid_levels}')
        return v.upper()


TEMPLATE = {
    'source': {
        'url': 'https://gitlab-source.example.com',
        'token': 'your-source-personal-access-token',
        'group_path': 'org/team',
        'api_version': 'v4',
        'timeout': 30,
    },
    'destination': {
        'url': 'https://gitlab-dest.example.com',
        'token': 'your-destination-personal-access-token',
        'group_path': 'org/migrated',
        'api_version': 'v4',
        'timeout': 30,
    },
    'migration': {
        'skip_repos': [],
        'state_file': 'migration_status.json',
        'verify_attempts': 3,
        'verify_backoff': 5,
        'dry_run': False,
    },
    'git': {
        'temp_dir': '/tmp/gitlab-tree-migrate',
        'timeout': 3600,
        'cleanup_temp': True,
        'lfs_enabled': False,
        'ssl_verify': True,
    },
    'logging': {
        'level': 'INFO',
        'file': 'migration.log',
        'error_file': 'migration-errors.log',
    },
}

# Environment variable per (section, key); flags are parsed as 'true'/other
ENV_VARS = {
    ('source', 'url'): 'SOURCE_GITLAB_URL',
    ('source', 'token'): 'SOURCE_GITLAB_TOKEN',
    ('source', 'group_path'): 'SOURCE_GROUP_PATH',
    ('destination', 'url'): 'DEST_GITLAB_URL',
    ('destination', 'token'): 'DEST_GITLAB_TOKEN',
    ('destination', 'group_path'): 'DEST_GROUP_PATH',
    ('migration', 'skip_repos'): 'MIGRATION_SKIP_REPOS',
    ('migration', 'strip_prefix'): 'MIGRATION_STRIP_PREFIX',
    ('migration', 'state_file'): 'MIGRATION_STATE_FILE',
    ('migration', 'verify_attempts'): 'MIGRATION_VERIFY_ATTEMPTS',
    ('migration', 'verify_backoff'): 'MIGRATION_VERIFY_BACKOFF',
    ('git', 'temp_dir'): 'GIT_TEMP_DIR',
    ('git', 'timeout'): 'GIT_TIMEOUT',
    ('logging', 'level'): 'LOG_LEVEL',
    ('logging', 'file'): 'LOG_FILE',
    ('logging', 'error_file'): 'ERROR_LOG_FILE',
}
ENV_FLAGS = {
    ('git', 'cleanup_temp'): 'GIT_CLEANUP_TEMP',
    ('git', 'lfs_enabled'): 'GIT_LFS_ENABLED',
    ('git', 'ssl_verify'): 'GIT_SSL_VERIFY',
}


class Config(BaseModel):
    """Complete settings of one migration run.

    Besides ``source``/``destination``, the keys ``old``/``new`` and a
    top-level ``skipRepos`` list are accepted, so a file such as::

        old: {url: ..., groupPath: org/teamA, token: ...}
        new: {url: ..., groupPath: org2/migrated, token: ...}
        skipRepos: [legacy]

    loads as well.
    """

    source: GitLabInstanceConfig = Field(
        ..., alias='old', description='Instance migrated from'
    )
    destination: GitLabInstanceConfig = Field(
        ..., alias='new', description='Instance migrated into'
    )
    migration: MigrationConfig = Field(
        default_factory=MigrationConfig, description='Migration settings'
    )
    git: GitConfig = Field(default_factory=GitConfig, description='Transfer settings')
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description='Logging settings'
    )

    class Config:
        extra = 'forbid'
        populate_by_name = True

    @root_validator(pre=True)
    def move_skip_repos(cls, values):
        """Fold a top-level ``skipRepos`` into ``migration.skip_repos``."""
        if not isinstance(values, dict) or 'skipRepos' not in values:
            return values

        values = dict(values)
        skip_repos = values.pop('skipRepos')
        migration = values.get('migration') or {}
        if isinstance(migration, MigrationConfig):
            migration = migration.dict()
        migration = dict(migration)
        migration.setdefault('skip_repos', skip_repos)
        values['migration'] = migration
        return values

    @validator('destination')
    def validate_root_groups(cls, v, values):
        """Both instances need a root group to migrate between."""
        source = values.get('source')
        if source is not None and not source.group_path:
            raise ValueError('source.group_path must be set')
        if not v.group_path:
            raise ValueError('destination.group_path must be set')
        return v

    @property
    def strip_prefix(self) -> str:
        """Legacy prefix removed from source repository paths."""
        if self.migration.strip_prefix is not None:
            return self.migration.strip_prefix
        return f'{self.source.group_path}/'

    @classmethod
    def from_file(cls, config_path: str) -> 'Config':
        """Load settings from a YAML file.

        Raises:
            FileNotFoundError: If ``config_path`` does not exist
        """
        config_file = Path(config_path)

        if not config_file.exists():
            raise FileNotFoundError(f'Configuration file not found: {config_path}')

        with open(config_file, 'r', encoding='utf-8') as f:
            config_data = yaml.safe_load(f) or {}

        return cls(**config_data)

    @classmethod
    def from_env(cls) -> 'Config':
        """Load settings from the environment, reading ``.env`` first."""
        load_dotenv()

        config_data: Dict[str, Dict[str, Any]] = {}
        for (section, key), name in ENV_VARS.items():
            value = os.getenv(name)
            if value is not None:
                config_data.setdefault(section, {})[key] = value
        for (section, key), name in ENV_FLAGS.items():
            value = os.getenv(name)
            if value is not None:
                config_data.setdefault(section, {})[key] = value.lower() == 'true'

        return cls(**config_data)

    def to_file(self, config_path: str) -> None:
        config_file = Path(config_path)
        config_file.parent.mkdir(parents=True, exist_ok=True)

        with open(config_file, 'w', encoding='utf-8') as f:
            yaml.dump(
                self.dict(), f, default_flow_style=False, indent=2, sort_keys=False
            )

    @staticmethod
    def create_template(output_path: str) -> None:
        """Write an example configuration to ``output_path``."""
        config_file = Path(output_path)
        config_file.parent.mkdir(parents=True, exist_ok=True)

        with open(config_file, 'w', encoding='utf-8') as f:
            yaml.dump(TEMPLATE, f, default_flow_style=False, indent=2, sort_keys=False)
