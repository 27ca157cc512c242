"""
Loading scope implementations.

IsolatedScope executes module sources from its roots in a private
registry. Code it loads gets a scope-bound ``__import__``, so plain
``import`` statements resolve through the same scope chain: parent
first, then the scope's own roots. A scope without a parent only
delegates to the interpreter's built-in and standard-library modules.

SystemScope is the embedding environment's own import system, used when
no foundation repositories are configured.
"""

import builtins
import importlib
import importlib.util
import shutil
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from importlib import resources
from pathlib import Path, PurePosixPath
from types import ModuleType
from typing import Any, Iterator, Mapping, Optional, Sequence

from core.logging import get_logger
from tools.loading.base import LoadingScope
from tools.loading.repositories import ModuleSource, SourceRoot


logger = get_logger(__name__)


# Scope the host is currently running under
current_scope: ContextVar[Optional[LoadingScope]] = ContextVar("current_scope", default=None)


@contextmanager
def use_scope(scope: Optional[LoadingScope]) -> Iterator[Optional[LoadingScope]]:
    """Make ``scope`` the current scope for the duration of the block."""
    token = current_scope.set(scope)
    try:
        yield scope
    finally:
        current_scope.reset(token)


def is_platform_module(name: str) -> bool:
    """Whether ``name`` belongs to a built-in or standard-library module."""
    top = name.partition(".")[0]
    return top in sys.builtin_module_names or top in sys.stdlib_module_names


def is_missing(error: ModuleNotFoundError, name: str) -> bool:
    """Whether ``error`` reports ``name`` itself (or one of its packages) as missing."""
    missing = error.name
    return bool(missing) and (name == missing or name.startswith(missing + "."))


def _validate_name(name: str) -> None:
    if not name or any(not part for part in name.split(".")):
        raise ValueError(f"Invalid module name: {name!r}")


class SystemScope(LoadingScope):
    """The embedding environment's import system."""

    def __init__(self, name: str = "system"):
        super().__init__(name, parent=None)

    def load_module(self, name: str) -> ModuleType:
        _validate_name(name)
        return importlib.import_module(name)

    def get_resource(self, name: str) -> Optional[bytes]:
        package, _, resource = name.strip("/").rpartition("/")
        if not package or not resource:
            return None
        try:
            return resources.files(package.replace("/", ".")).joinpath(resource).read_bytes()
        except (ImportError, OSError, TypeError):
            return None


class IsolatedScope(LoadingScope):
    """
    Scope backed by source roots with a private module registry.

    Acts as the importlib loader of every module it creates, so loaded
    code can reach its resources through ``__loader__.get_resource``.
    """

    def __init__(
        self,
        name: str,
        roots: Sequence[SourceRoot],
        parent: Optional[LoadingScope] = None,
        workdir: Optional[Path] = None,
    ):
        super().__init__(name, parent)
        self.roots = list(roots)
        self.modules: dict[str, ModuleType] = {}
        self.workdir = workdir
        self._pending: dict[str, ModuleSource] = {}
        self._builtins = dict(vars(builtins))
        self._builtins["__import__"] = self._import

    def __repr__(self) -> str:
        return f"IsolatedScope(name={self.name!r}, roots={len(self.roots)})"

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def load_module(self, name: str) -> ModuleType:
        _validate_name(name)
        module = self.modules.get(name)
        if module is not None:
            return module

        try:
            return self._delegate(name)
        except ModuleNotFoundError as e:
            if not is_missing(e, name):
                raise

        return self._load_local(name)

    def get_resource(self, name: str) -> Optional[bytes]:
        if self.parent is not None:
            data = self.parent.get_resource(name)
            if data is not None:
                return data
        for root in self.roots:
            data = root.read(name)
            if data is not None:
                return data
        return None

    def find_source(self, name: str) -> Optional[ModuleSource]:
        """Source of ``name`` in this scope's own roots, ignoring the parent."""
        for root in self.roots:
            source = root.find_module(name)
            if source is not None:
                return source
        return None

    def _delegate(self, name: str) -> ModuleType:
        if self.parent is not None:
            return self.parent.load_module(name)
        if is_platform_module(name):
            return importlib.import_module(name)
        raise ModuleNotFoundError(f"No module named {name!r}", name=name)

    def _load_local(self, name: str) -> ModuleType:
        package, _, child = name.rpartition(".")
        package_module = self.load_module(package) if package else None

        # Executing the package may already have imported this module
        if name in self.modules:
            return self.modules[name]

        if package_module is not None and not hasattr(package_module, "__path__"):
            raise ModuleNotFoundError(
                f"No module named {name!r}; {package!r} is not a package",
                name=name,
            )

        source = self.find_source(name)
        if source is None:
            raise ModuleNotFoundError(
                f"No module named {name!r} in scope {self.name!r}",
                name=name,
            )

        spec = importlib.util.spec_from_loader(
            name,
            self,
            origin=source.origin,
            is_package=source.is_package,
        )
        if source.is_package:
            spec.submodule_search_locations = [str(PurePosixPath(source.origin).parent)]

        self._pending[name] = source
        module = importlib.util.module_from_spec(spec)
        self.modules[name] = module
        try:
            self.exec_module(module)
        except BaseException:
            self.modules.pop(name, None)
            self._pending.pop(name, None)
            raise

        module = self.modules[name]
        if package_module is not None:
            setattr(package_module, child, module)

        logger.debug("Loaded module", scope=self.name, module=name, origin=source.origin)
        return module

    # ------------------------------------------------------------------
    # importlib loader protocol
    # ------------------------------------------------------------------

    def create_module(self, spec: Any) -> None:
        return None

    def exec_module(self, module: ModuleType) -> None:
        source = self._pending.pop(module.__name__)
        module.__file__ = source.origin
        module.__dict__["__builtins__"] = self._builtins
        code = compile(source.data, source.origin, "exec", dont_inherit=True)
        exec(code, module.__dict__)

    # ------------------------------------------------------------------
    # Scope-bound __import__
    # ------------------------------------------------------------------

    def _import(
        self,
        name: str,
        globals: Optional[Mapping[str, Any]] = None,
        locals: Optional[Mapping[str, Any]] = None,
        fromlist: Sequence[str] = (),
        level: int = 0,
    ) -> ModuleType:
        if level > 0:
            name = importlib.util.resolve_name("." * level + name, _package_of(globals))

        module = self.load_module(name)

        if not fromlist:
            if level == 0 and "." in name:
                return self.load_module(name.partition(".")[0])
            return module

        if hasattr(module, "__path__"):
            for item in fromlist:
                if item == "*":
                    for exported in getattr(module, "__all__", ()):
                        self._import_child(module, name, exported)
                elif not hasattr(module, item):
                    self._import_child(module, name, item)
        return module

    def _import_child(self, module: ModuleType, package: str, item: str) -> None:
        child = f"{package}.{item}"
        try:
            self.load_module(child)
        except ModuleNotFoundError as e:
            # "from pkg import name" then fails with ImportError as usual
            if e.name != child:
                raise

    def close(self) -> None:
        for root in self.roots:
            root.close()
        if self.workdir is not None:
            shutil.rmtree(self.workdir, ignore_errors=True)
        self.modules.clear()
        logger.debug("Closed scope", scope=self.name)


def _package_of(globals: Optional[Mapping[str, Any]]) -> str:
    if not globals:
        raise ImportError("attempted relative import with no known parent package")
    package = globals.get("__package__")
    if package is None:
        name = globals.get("__name__", "")
        package = name if "__path__" in globals else name.rpartition(".")[0]
    if not package:
        raise ImportError("attempted relative import with no known parent package")
    return package
