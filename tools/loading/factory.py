"""
Loading scope construction.

ScopeBuilder turns a layer's ``<layer>.loader`` value into a loading
scope: placeholders are expanded, the list is split into paths, each
path is classified into a repository and the repositories are handed to
``create_loading_scope``.
"""

import shutil
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Optional, Sequence
from urllib.parse import urlsplit

from core.logging import get_logger
from tools.loading.base import (
    ARCHIVE_SUFFIXES,
    WILDCARD,
    LoadingScope,
    Repository,
    RepositoryType,
    ScopeConstructionFailed,
)
from tools.loading.paths import parse_paths
from tools.loading.repositories import SourceRoot, make_workdir, open_repository
from tools.loading.scope import IsolatedScope


if TYPE_CHECKING:
    from core.placeholders import PlaceholderResolver
    from core.properties import ProcessConfig


logger = get_logger(__name__)


LOADER_SUFFIX = ".loader"

REMOTE_SCHEMES = frozenset({"http", "https", "ftp", "file"})


ScopeConstructor = Callable[[str, Sequence[Repository], Optional[LoadingScope]], LoadingScope]


def loader_property(name: str) -> str:
    """Configuration key holding the repository list of layer ``name``."""
    return f"{name}{LOADER_SUFFIX}"


def is_remote_locator(path: str) -> bool:
    """
    Whether ``path`` is an absolute remote locator.

    Needs a recognised scheme and a host; ``file:`` URLs with an absolute
    path are accepted without one. Windows drive paths ("C:/lib") do not
    qualify because single letters are not recognised schemes.
    """
    try:
        parts = urlsplit(path)
    except ValueError:
        return False
    if parts.scheme not in REMOTE_SCHEMES:
        return False
    if parts.netloc:
        return True
    return parts.scheme == "file" and parts.path.startswith("/")


def classify_repository(path: str) -> Repository:
    """
    Classify a repository path.

    Checked in order: remote locator, archive set (``*<suffix>``, which
    is stripped), archive, directory.
    """
    if is_remote_locator(path):
        return Repository(path, RepositoryType.URL)

    for suffix in ARCHIVE_SUFFIXES:
        pattern = WILDCARD + suffix
        if path.endswith(pattern):
            return Repository(path[:-len(pattern)], RepositoryType.ARCHIVE_SET)

    if path.endswith(ARCHIVE_SUFFIXES):
        return Repository(path, RepositoryType.ARCHIVE)

    return Repository(path, RepositoryType.DIRECTORY)


def create_loading_scope(
    name: str,
    repositories: Sequence[Repository],
    parent: Optional[LoadingScope] = None,
) -> LoadingScope:
    """
    Build an isolated scope over ``repositories``.

    Args:
        name: Scope name (the layer name)
        repositories: Classified repositories, searched in order
        parent: Scope to delegate to first; None delegates to the
            standard library only

    Raises:
        ScopeConstructionFailed: If any repository is missing or unreadable
    """
    workdir: list[Path] = []

    def workdir_factory() -> Path:
        if not workdir:
            workdir.append(make_workdir(name))
        return workdir[0]

    roots: list[SourceRoot] = []
    try:
        for repository in repositories:
            opened = open_repository(repository, workdir_factory)
            roots.extend(opened)
            logger.debug(
                "Added repository",
                scope=name,
                location=repository.location,
                type=repository.type.value,
                roots=len(opened),
            )
    except ScopeConstructionFailed:
        for root in roots:
            root.close()
        if workdir:
            shutil.rmtree(workdir[0], ignore_errors=True)
        raise

    return IsolatedScope(name, roots, parent, workdir=workdir[0] if workdir else None)


class ScopeBuilder:
    """
    Builds the loading scope of a named layer.

    Usage:
        builder = ScopeBuilder(config, PlaceholderResolver(directories, config))
        common = builder.build("common", None)
        server = builder.build("server", common)
    """

    def __init__(
        self,
        config: "ProcessConfig",
        resolver: "PlaceholderResolver",
        construct: ScopeConstructor = create_loading_scope,
    ):
        self.config = config
        self.resolver = resolver
        self.construct = construct

    def repositories(self, name: str) -> Optional[list[Repository]]:
        """
        Classified repositories of layer ``name``.

        Returns None when the layer has no (or an empty) repository list.

        Raises:
            MalformedPathList: If the list quotes paths incorrectly
        """
        value = self.config.get_property(loader_property(name))
        if not value:
            return None
        value = self.resolver.resolve(value)
        return [classify_repository(path) for path in parse_paths(value)]

    def build(self, name: str, parent: Optional[LoadingScope]) -> Optional[LoadingScope]:
        """
        Build the scope of layer ``name``.

        Returns ``parent`` unchanged when the layer is not configured.

        Raises:
            MalformedPathList: If the repository list is malformed
            ScopeConstructionFailed: If a repository is missing or unreadable
        """
        repositories = self.repositories(name)
        if repositories is None:
            logger.debug("Layer not configured, using parent", layer=name)
            return parent

        try:
            scope = self.construct(name, repositories, parent)
        except ScopeConstructionFailed as e:
            logger.error(
                "Loading scope creation failed",
                layer=name,
                repository=e.repository.location if e.repository else None,
                error=str(e),
            )
            raise

        logger.info(
            "Built loading scope",
            layer=name,
            repositories=len(repositories),
            parent=parent.name if parent is not None else None,
        )
        return scope
