"""
Loading scope contract and repository types.

A loading scope resolves modules (by dotted name) and resources (by
slash-separated name) from an ordered list of repositories, asking its
parent first. Scopes keep their own module registry and never touch
``sys.modules``, so what one scope loads stays invisible to scopes that
do not delegate to it.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from types import ModuleType
from typing import Any, Iterator, Optional


# Recognised archive suffixes; an archive is a zip file whatever its suffix
ARCHIVE_SUFFIXES = (".jar", ".zip", ".whl", ".egg", ".pyz")
WILDCARD = "*"


class RepositoryType(str, Enum):
    """How a configured repository path is interpreted."""
    URL = "url"                  # Remote (or file:) locator
    ARCHIVE_SET = "archive_set"  # Every archive in a directory
    ARCHIVE = "archive"          # Single archive
    DIRECTORY = "directory"      # Loose tree of source files


@dataclass(frozen=True)
class Repository:
    """One classified repository entry."""
    location: str
    type: RepositoryType


class LoadingScope(ABC):
    """
    Abstract loading scope.

    Usage:
        scope = create_loading_scope("common", repositories, parent=None)

        module = scope.load_module("mypkg.util")
        factory = scope.load_attribute("mypkg.app:create")
        data = scope.get_resource("mypkg/defaults.json")
    """

    def __init__(self, name: str, parent: Optional["LoadingScope"] = None):
        self.name = name
        self.parent = parent

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"

    @abstractmethod
    def load_module(self, name: str) -> ModuleType:
        """
        Load a module by absolute dotted name.

        Raises:
            ModuleNotFoundError: If neither this scope nor its ancestors
                can provide the module
        """
        pass

    @abstractmethod
    def get_resource(self, name: str) -> Optional[bytes]:
        """Content of a slash-separated resource, or None if not found."""
        pass

    def load_attribute(self, reference: str) -> Any:
        """
        Resolve a ``"module:attribute"`` reference.

        Dotted attribute paths are followed ("pkg.mod:Class.factory").

        Raises:
            ModuleNotFoundError: If the module cannot be loaded
            AttributeError: If the attribute does not exist
        """
        module_name, _, attribute = reference.partition(":")
        target: Any = self.load_module(module_name)
        for part in filter(None, attribute.split(".")):
            target = getattr(target, part)
        return target

    def ancestors(self) -> Iterator["LoadingScope"]:
        """This scope's parents, nearest first."""
        scope = self.parent
        while scope is not None:
            yield scope
            scope = scope.parent

    def close(self) -> None:
        """Release resources held by this scope."""
        pass


class BootstrapError(Exception):
    """Base exception for fatal bootstrap failures."""
    pass


class MalformedPathList(BootstrapError, ValueError):
    """A repository list uses the double quote outside of quoting a path."""
    pass


class ScopeConstructionFailed(BootstrapError):
    """A classified repository is missing or unreadable."""

    def __init__(self, message: str, repository: Optional[Repository] = None):
        super().__init__(message)
        self.repository = repository


class HostLoadFailed(BootstrapError):
    """The host entry point could not be loaded from the host scope."""
    pass
