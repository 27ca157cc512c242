"""
Source roots backing a loading scope.

Each classified repository opens into one or more roots. A root can find
a module's source and read a resource; directories are read from disk,
archives through ``zipfile``. Remote archives are downloaded once into a
scope-owned temporary directory.
"""

import os
import tempfile
import zipfile
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Optional
from urllib.parse import unquote, urlsplit
from urllib.request import url2pathname, urlopen

from core.logging import get_logger
from tools.loading.base import (
    ARCHIVE_SUFFIXES,
    Repository,
    RepositoryType,
    ScopeConstructionFailed,
)


logger = get_logger(__name__)


SOURCE_SUFFIX = ".py"
PACKAGE_INIT = "__init__.py"


@dataclass
class ModuleSource:
    """Source found for a module in a root."""
    name: str
    origin: str
    is_package: bool
    data: bytes


class SourceRoot(ABC):
    """A single searchable location."""

    def __init__(self, location: str):
        self.location = location

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.location!r})"

    @abstractmethod
    def find_module(self, name: str) -> Optional[ModuleSource]:
        """Source of module ``name`` (dotted), or None."""
        pass

    @abstractmethod
    def read(self, resource: str) -> Optional[bytes]:
        """Content of ``resource`` (slash-separated), or None."""
        pass

    def close(self) -> None:
        pass


class DirectoryRoot(SourceRoot):
    """Loose tree of individually addressable files."""

    def __init__(self, path: Path):
        super().__init__(str(path))
        self.path = path

    def find_module(self, name: str) -> Optional[ModuleSource]:
        relative = Path(*name.split("."))
        package_init = self.path / relative / PACKAGE_INIT
        module_file = self.path / relative.with_name(relative.name + SOURCE_SUFFIX)
        for candidate, is_package in ((package_init, True), (module_file, False)):
            if candidate.is_file():
                try:
                    data = candidate.read_bytes()
                except OSError as e:
                    raise ImportError(f"Cannot read [{candidate}]: {e}", name=name, path=str(candidate)) from e
                return ModuleSource(name, str(candidate), is_package, data)
        return None

    def read(self, resource: str) -> Optional[bytes]:
        parts = PurePosixPath(resource).parts
        if not parts or ".." in parts or parts[0] == "/":
            return None
        target = self.path.joinpath(*parts)
        if not target.is_file():
            return None
        return target.read_bytes()


class ArchiveRoot(SourceRoot):
    """Single zip archive (.zip, .jar, .whl, ...)."""

    def __init__(self, path: Path):
        super().__init__(str(path))
        self.path = path
        self._archive = zipfile.ZipFile(path)
        self._names = set(self._archive.namelist())

    def find_module(self, name: str) -> Optional[ModuleSource]:
        relative = name.replace(".", "/")
        for member, is_package in (
            (f"{relative}/{PACKAGE_INIT}", True),
            (f"{relative}{SOURCE_SUFFIX}", False),
        ):
            if member in self._names:
                origin = f"{self.path}/{member}"
                return ModuleSource(name, origin, is_package, self._archive.read(member))
        return None

    def read(self, resource: str) -> Optional[bytes]:
        member = resource.lstrip("/")
        if member not in self._names:
            return None
        return self._archive.read(member)

    def close(self) -> None:
        self._archive.close()


def _is_archive(path: str) -> bool:
    return path.endswith(ARCHIVE_SUFFIXES)


def _open_directory(path: Path, repository: Repository) -> DirectoryRoot:
    if not path.is_dir():
        raise ScopeConstructionFailed(
            f"Directory repository [{path}] does not exist or is not a directory",
            repository,
        )
    if not os.access(path, os.R_OK | os.X_OK):
        raise ScopeConstructionFailed(f"Directory repository [{path}] is not readable", repository)
    return DirectoryRoot(path)


def _open_archive(path: Path, repository: Repository) -> ArchiveRoot:
    if not path.is_file():
        raise ScopeConstructionFailed(
            f"Archive repository [{path}] does not exist or is not a file",
            repository,
        )
    if not os.access(path, os.R_OK):
        raise ScopeConstructionFailed(f"Archive repository [{path}] is not readable", repository)
    try:
        return ArchiveRoot(path)
    except (OSError, zipfile.BadZipFile) as e:
        raise ScopeConstructionFailed(
            f"Archive repository [{path}] is not readable: {e}",
            repository,
        ) from e


def _open_archive_set(path: Path, repository: Repository) -> list[SourceRoot]:
    if not path.is_dir():
        raise ScopeConstructionFailed(
            f"Archive set directory [{path}] does not exist or is not a directory",
            repository,
        )
    try:
        members = sorted(
            candidate for candidate in path.iterdir()
            if candidate.is_file() and _is_archive(candidate.name)
        )
    except OSError as e:
        raise ScopeConstructionFailed(
            f"Archive set directory [{path}] is not readable: {e}",
            repository,
        ) from e
    roots: list[SourceRoot] = []
    try:
        for member in members:
            roots.append(_open_archive(member, repository))
    except ScopeConstructionFailed:
        for root in roots:
            root.close()
        raise
    return roots


def _download(url: str, workdir: Path, repository: Repository) -> Path:
    name = Path(unquote(urlsplit(url).path)).name
    # Prefixed so that equally named archives from different hosts coexist
    target = workdir / f"{len(list(workdir.iterdir()))}-{name}"
    try:
        with urlopen(url) as response:
            target.write_bytes(response.read())
    except (OSError, ValueError) as e:
        raise ScopeConstructionFailed(
            f"Remote repository [{url}] could not be downloaded: {e}",
            repository,
        ) from e
    logger.debug("Downloaded remote repository", url=url, path=str(target))
    return target


def open_repository(repository: Repository, workdir_factory) -> list[SourceRoot]:
    """
    Open the roots for one classified repository.

    Args:
        repository: Classified repository entry
        workdir_factory: Zero-argument callable returning a scratch
            directory for downloads (only called for remote archives)

    Raises:
        ScopeConstructionFailed: If the repository is missing or unreadable
    """
    location = repository.location

    if repository.type == RepositoryType.DIRECTORY:
        return [_open_directory(Path(location), repository)]

    if repository.type == RepositoryType.ARCHIVE:
        return [_open_archive(Path(location), repository)]

    if repository.type == RepositoryType.ARCHIVE_SET:
        return _open_archive_set(Path(location), repository)

    if repository.type == RepositoryType.URL:
        parts = urlsplit(location)
        if parts.scheme == "file":
            local = Path(url2pathname(parts.path))
            if _is_archive(local.name):
                return [_open_archive(local, repository)]
            return [_open_directory(local, repository)]
        if not _is_archive(parts.path):
            raise ScopeConstructionFailed(
                f"Remote repository [{location}] must name an archive",
                repository,
            )
        return [_open_archive(_download(location, workdir_factory(), repository), repository)]

    raise ScopeConstructionFailed(f"Unsupported repository type: {repository.type}", repository)


def make_workdir(prefix: str) -> Path:
    """Scratch directory for remote downloads."""
    return Path(tempfile.mkdtemp(prefix=f"{prefix}-"))
