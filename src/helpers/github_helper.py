"""Github client for the installations"""

import logging
import threading
from typing import Optional

import github
from cachetools import TTLCache, cached

from config import GithubConfig

logger = logging.getLogger(__name__)

# Installation tokens last one hour
_clients = TTLCache(maxsize=128, ttl=50 * 60)
_clients_lock = threading.Lock()


@cached(
    _clients,
    key=lambda config, installation_id=None: (config.token, config.app_id, installation_id),
    lock=_clients_lock,
)
def get_github(config: GithubConfig, installation_id: Optional[int] = None) -> github.Github:
    """
    Return the Github client.
    A configured token (e.g. GITHUB_TOKEN in GitHub Actions) is used when present,
    otherwise the GitHub App installation is used.
    """
    if config.token:
        return github.Github(auth=github.Auth.Token(config.token))
    if not (config.app_id and config.private_key):
        raise ValueError("GITHUB_TOKEN or GITHUB_APP_ID and the App private key are required")
    if installation_id is None:
        raise ValueError("installation_id is required to authenticate as the GitHub App")
    logger.info("Authenticating as installation %s", installation_id)
    app_auth = github.Auth.AppAuth(config.app_id, config.private_key)
    integration = github.GithubIntegration(auth=app_auth)
    return integration.get_github_for_installation(installation_id)
