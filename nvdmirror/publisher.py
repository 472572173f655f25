"""Publishing the record tree to a git remote.

Stages ``cves/`` and the checkpoint file in the repository that contains
the working directory, commits, and pushes the current branch over HTTPS
using a token from the environment.
"""

import logging
import os
from pathlib import Path
from typing import Optional

import pygit2
import pygit2.enums

from .config import SyncConfig
from .errors import PublishError

logger = logging.getLogger(__name__)


class TokenRemoteCallback(pygit2.RemoteCallbacks):
    """HTTPS basic-auth callbacks using an access token as the password."""

    def __init__(self, username: str, token: str) -> None:
        super().__init__()
        self.username = username
        self.token = token

    def credentials(self, url: str, username_from_url: Optional[str],
                    allowed_types: pygit2.enums.CredentialType) -> Optional[pygit2.UserPass]:
        """Get credentials."""
        del url
        del username_from_url
        if allowed_types & pygit2.enums.CredentialType.USERPASS_PLAINTEXT:
            return pygit2.UserPass(self.username, self.token)
        return None


def _repo_relative(repo: pygit2.Repository, path: Path) -> str:
    """Path of ``path`` relative to the repository root, in posix form."""
    root = Path(repo.workdir).resolve()
    try:
        return path.resolve().relative_to(root).as_posix()
    except ValueError as e:
        raise PublishError(f"{path} is outside the repository at {root}") from e


def _stage(repo: pygit2.Repository, config: SyncConfig) -> None:
    index = repo.index
    logger.info("git add")
    index.add_all([_repo_relative(repo, config.cves_path)])
    if config.checkpoint_path.exists():
        index.add(_repo_relative(repo, config.checkpoint_path))
    index.write()

    logger.info("git status")
    logger.info("changed: %d", len(repo.status()))


def _commit(repo: pygit2.Repository, config: SyncConfig) -> bool:
    """Commit the index; return ``False`` if it matches HEAD already."""
    tree = repo.index.write_tree()
    if repo.head_is_unborn:
        ref, parents = "HEAD", []
    else:
        head = repo.head.peel(pygit2.Commit)
        if head.tree_id == tree:
            return False
        ref, parents = repo.head.name, [head.id]

    logger.info("git commit")
    author = pygit2.Signature(config.publish.author_name, config.publish.author_email)
    repo.create_commit(ref, author, author, config.publish.commit_message, tree, parents)
    return True


def publish(config: SyncConfig) -> bool:
    """Commit the record tree and checkpoint, then push them.

    Args:
        config: Sync configuration; ``config.publish`` supplies the remote,
            credentials and commit identity.

    Returns:
        ``True`` if a commit was created and pushed, ``False`` if there was
        nothing to commit.

    Raises:
        PublishError: on missing remote/token or any git failure.
    """
    settings = config.publish
    if not settings.remote_url:
        raise PublishError("publish.remote_url is not configured")
    token = os.environ.get(settings.token_env)
    if not token:
        raise PublishError(f"{settings.token_env} is not set")

    try:
        repo = pygit2.Repository(str(config.workdir))
    except pygit2.GitError as e:
        raise PublishError(f"failed to open git repository at {config.workdir}: {e}") from e

    if settings.remote_name in repo.remotes.names():
        raise PublishError(f"git remote {settings.remote_name!r} already exists")

    logger.info("git remote add")
    remote = repo.remotes.create(settings.remote_name, settings.remote_url)
    try:
        _stage(repo, config)
        if not _commit(repo, config):
            logger.info("Nothing to commit")
            return False

        logger.info("git push")
        remote.push([repo.head.name], callbacks=TokenRemoteCallback(settings.username, token))
        return True
    except pygit2.GitError as e:
        raise PublishError(f"git publish failed: {e}") from e
    finally:
        repo.remotes.delete(settings.remote_name)
