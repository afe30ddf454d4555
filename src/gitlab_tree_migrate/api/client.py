"""Synchronous client for the GitLab REST API (v4)."""

from typing import Any, Dict, List, Optional
from urllib.parse import urljoin

import requests
from loguru import logger
from pydantic import BaseModel

from ..config.config import GitLabInstanceConfig
from .exceptions import (
    GitLabAPIError,
    GitLabAuthenticationError,
    GitLabNotFoundError,
    GitLabPermissionError,
    GitLabRateLimitError,
    GitLabValidationError,
)
from .rate_limiter import RateLimiter

# Status codes with a dedicated exception and a fixed message
STATUS_ERRORS = {
    401: (GitLabAuthenticationError, 'Authentication failed'),
    403: (GitLabPermissionError, 'Permission denied'),
    404: (GitLabNotFoundError, 'Resource not found'),
}


class APIResponse(BaseModel):
    """Decoded response of one API call."""

    status_code: int
    data: Any
    headers: Dict[str, str]
    success: bool


class GitLabClient:
    """Talks to one GitLab instance with one set of credentials.

    Every call waits on the rate limiter, and error statuses are raised as
    ``GitLabAPIError`` subclasses. Use ``get_or_none`` where a missing
    resource is an expected answer rather than a failure.
    """

    def __init__(self, config: GitLabInstanceConfig):
        self.config = config
        self.base_url = f'{config.url.rstrip("/")}/api/{config.api_version}'
        self.rate_limiter = RateLimiter(config.rate_limit_per_second)

        self.session = requests.Session()
        self.session.headers.update(self._auth_headers(config))
        self.session.headers.update(
            {
                'Content-Type': 'application/json',
                'User-Agent': 'gitlab-tree-migrate/0.1.0',
            }
        )

        logger.info(f'Initialized GitLab client for {config.url}')

    @staticmethod
    def _auth_headers(config: GitLabInstanceConfig) -> Dict[str, str]:
        if config.token:
            return {'Private-Token': config.token}
        if config.oauth_token:
            return {'Authorization': f'Bearer {config.oauth_token}'}
        raise GitLabAuthenticationError('No authentication token provided')

    @property
    def instance_url(self) -> str:
        """Base URL of the GitLab instance (without the API suffix)."""
        return self.config.url

    def _build_url(self, endpoint: str) -> str:
        return urljoin(self.base_url + '/', endpoint.lstrip('/'))

    def _request(self, method: str, endpoint: str, **kwargs) -> APIResponse:
        """Send one request and decode the response.

        Raises:
            GitLabAPIError: On network errors and error statuses
        """
        url = self._build_url(endpoint)
        self.rate_limiter.acquire_sync()

        try:
            response = self.session.request(
                method, url, timeout=self.config.timeout, **kwargs
            )
        except requests.RequestException as e:
            logger.error(f'Network error during {method} {endpoint}: {e}')
            raise GitLabAPIError(f'Network error: {e}')
        return self._decode(response)

    def _decode(self, response: requests.Response) -> APIResponse:
        status = response.status_code
        headers = dict(response.headers)

        if status == 429:
            retry_after = int(headers.get('Retry-After', 60))
            raise GitLabRateLimitError(
                f'Rate limit exceeded. Retry after {retry_after} seconds',
                retry_after=retry_after,
                status_code=status,
            )

        if status in STATUS_ERRORS:
            error_class, message = STATUS_ERRORS[status]
            raise error_class(message, status_code=status)

        if status >= 400:
            body = self._json_or_none(response)
            if isinstance(body, dict) and body.get('message'):
                message = body['message']
            else:
                message = f'HTTP {status}: {response.text}'
            error_class = GitLabValidationError if status in (400, 422) else GitLabAPIError
            raise error_class(
                f'API request failed: {message}',
                status_code=status,
                response_data=body if isinstance(body, dict) else None,
            )

        data = self._json_or_none(response) if response.content else None
        if data is None and response.content:
            data = response.text
        return APIResponse(
            status_code=status,
            data=data,
            headers=headers,
            success=200 <= status < 300,
        )

    @staticmethod
    def _json_or_none(response: requests.Response) -> Any:
        try:
            return response.json()
        except ValueError:
            return None

    def get(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> APIResponse:
        return self._request('GET', endpoint, params=params)

    def post(self, endpoint: str, data: Optional[Dict[str, Any]] = None) -> APIResponse:
        return self._request('POST', endpoint, json=data)

    def put(self, endpoint: str, data: Optional[Dict[str, Any]] = None) -> APIResponse:
        return self._request('PUT', endpoint, json=data)

    def get_or_none(
        self, endpoint: str, params: Optional[Dict[str, Any]] = None
    ) -> Optional[APIResponse]:
        """``get`` that answers ``None`` when the resource does not exist."""
        try:
            return self.get(endpoint, params=params)
        except GitLabNotFoundError:
            return None

    def get_paginated(
        self,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        per_page: int = 100,
    ) -> List[Dict[str, Any]]:
        """Collect every item of a list endpoint, page by page.

        Stops at ``X-Total-Pages`` when the server sends it, otherwise at the
        first short or empty page.
        """
        items: List[Dict[str, Any]] = []
        query = dict(params or {}, per_page=per_page)
        page = 1

        while True:
            response = self.get(endpoint, params=dict(query, page=page))
            batch = response.data if response.success else None
            if not batch:
                break
            items.extend(batch)

            total_pages = response.headers.get('X-Total-Pages')
            if (total_pages and page >= int(total_pages)) or len(batch) < per_page:
                break
            page += 1

        logger.debug(f'Retrieved {len(items)} items from {endpoint}')
        return items

    def get_version(self) -> Optional[str]:
        """Version reported by ``/version``, used to check credentials.

        Authentication and permission errors propagate. Any other API error
        is logged and reported as ``None``.
        """
        try:
            response = self.get('/version')
        except (GitLabAuthenticationError, GitLabPermissionError):
            raise
        except GitLabAPIError as e:
            logger.warning(f'Could not retrieve GitLab version: {e}')
            return None

        if response.success and isinstance(response.data, dict):
            return response.data.get('version')
        return None

    def close(self):
        self.session.close()
        logger.debug(f'GitLab client session closed for {self.config.url}')

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class GitLabClientFactory:
    """Builds clients from instance configuration."""

    @staticmethod
    def create_client(config: GitLabInstanceConfig) -> GitLabClient:
        """Client for ``config``.

        Raises:
            GitLabAuthenticationError: If neither token nor oauth_token is set
        """
        if not config.token and not config.oauth_token:
            raise GitLabAuthenticationError(
                'Either token or oauth_token must be provided'
            )
        return GitLabClient(config)
