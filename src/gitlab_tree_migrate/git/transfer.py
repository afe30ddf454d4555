"""Full mirror copy of a repository between two GitLab instances."""

import os
import re
import shutil
import subprocess
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Protocol

from loguru import logger

from ..config.config import GitConfig

HIDDEN_REF_PATTERNS = (
    'refs/merge-requests/',
    'refs/pull/',
    'refs/keep-around/',
    'refs/pipelines/',
    'refs/environments/',
    'deny updating a hidden ref',
)

_CREDENTIALS = re.compile(r'(https?://)[^/@\s]+@')


@dataclass
class TransferResult:
    """Outcome of a transfer."""

    ok: bool
    rejected_hidden_ref: bool = False
    error_detail: Optional[str] = None


class TransferClient(Protocol):
    """Anything able to copy every ref of one repository to another URL."""

    def transfer(self, source_url: str, dest_url: str) -> TransferResult:
        ...


def with_token(url: str, token: Optional[str]) -> str:
    """Embed ``oauth2:<token>`` credentials into an HTTP(S) URL."""
    if not token or '@' in url.split('://', 1)[-1].split('/', 1)[0]:
        return url
    for scheme in ('https://', 'http://'):
        if url.startswith(scheme):
            return url.replace(scheme, f'{scheme}oauth2:{token}@', 1)
    return url


def mask_credentials(text: str) -> str:
    """Hide credentials embedded in URLs."""
    return _CREDENTIALS.sub(r'\1***@', text)


def only_hidden_refs_rejected(stderr: str) -> bool:
    """True if every rejected ref in a push error output is a hidden ref."""
    rejected = [line for line in stderr.splitlines() if '[remote rejected]' in line]
    if not rejected:
        return False
    return all(
        any(pattern in line for pattern in HIDDEN_REF_PATTERNS) for line in rejected
    )


class GitTransfer:
    """Clone-then-push transfer using ``git --mirror``."""

    def __init__(
        self,
        config: Optional[GitConfig] = None,
        source_token: Optional[str] = None,
        dest_token: Optional[str] = None,
    ):
        """Initialize git transfer.

        Args:
            config: Git configuration
            source_token: Token used to read from the source instance
            dest_token: Token used to push to the destination instance
        """
        self.config = config or GitConfig()
        self.source_token = source_token
        self.dest_token = dest_token
        self.logger = logger.bind(component='GitTransfer')

    def transfer(self, source_url: str, dest_url: str) -> TransferResult:
        """Mirror every ref of ``source_url`` into ``dest_url``."""
        work_dir = self._create_temp_directory()
        repo_path = os.path.join(work_dir, 'repo.git')

        try:
            self.logger.info(
                f'Transferring {mask_credentials(source_url)} -> '
                f'{mask_credentials(dest_url)}'
            )
            clone = self._run(
                [
                    'clone',
                    '--mirror',
                    with_token(source_url, self.source_token),
                    repo_path,
                ],
                work_dir,
            )
            if clone.returncode != 0:
                return TransferResult(ok=False, error_detail=self._detail(clone))

            if self.config.lfs_enabled:
                lfs_fetch = self._run(['lfs', 'fetch', '--all'], repo_path)
                if lfs_fetch.returncode != 0:
                    self.logger.warning(
                        f'Git LFS fetch failed, LFS objects may be missing: '
                        f'{self._detail(lfs_fetch)}'
                    )

            push_url = with_token(dest_url, self.dest_token)
            push = self._run(['push', '--mirror', push_url], repo_path)
            if push.returncode != 0:
                stderr = push.stderr or ''
                return TransferResult(
                    ok=False,
                    rejected_hidden_ref=only_hidden_refs_rejected(stderr),
                    error_detail=self._detail(push),
                )

            if self.config.lfs_enabled:
                lfs_push = self._run(['lfs', 'push', '--all', push_url], repo_path)
                if lfs_push.returncode != 0:
                    return TransferResult(ok=False, error_detail=self._detail(lfs_push))

            return TransferResult(ok=True)

        except subprocess.TimeoutExpired:
            return TransferResult(
                ok=False,
                error_detail=f'Git operation timed out after {self.config.timeout} seconds',
            )
        except OSError as e:
            return TransferResult(ok=False, error_detail=f'Git execution failed: {e}')
        finally:
            if self.config.cleanup_temp:
                self._cleanup_temp_directory(work_dir)

    def _run(self, args: List[str], cwd: str) -> subprocess.CompletedProcess:
        cmd = ['git']
        if not self.config.ssl_verify:
            cmd += ['-c', 'http.sslVerify=false']
        cmd += args

        self.logger.debug(f'Executing git command: {mask_credentials(" ".join(cmd))}')
        result = subprocess.run(
            cmd,
            cwd=cwd,
            capture_output=True,
            text=True,
            timeout=self.config.timeout,
            env={**os.environ, 'GIT_TERMINAL_PROMPT': '0'},
        )
        self.logger.debug(f'Git command return code: {result.returncode}')
        return result

    @staticmethod
    def _detail(result: subprocess.CompletedProcess) -> str:
        output = (result.stderr or result.stdout or 'Unknown error').strip()
        # Keep the tail, git prints the actual failure last
        return mask_credentials(output[-2000:])

    def _create_temp_directory(self) -> str:
        if self.config.temp_dir:
            base_dir = Path(self.config.temp_dir)
            base_dir.mkdir(parents=True, exist_ok=True)
            return tempfile.mkdtemp(prefix='transfer_', dir=base_dir)
        return tempfile.mkdtemp(prefix='gitlab_tree_migrate_')

    def _cleanup_temp_directory(self, temp_path: str) -> None:
        try:
            if os.path.exists(temp_path):
                shutil.rmtree(temp_path)
                self.logger.debug(f'Cleaned up temporary directory: {temp_path}')
        except OSError as e:
            self.logger.warning(
                f'Failed to cleanup temporary directory {temp_path}: {e}'
            )
