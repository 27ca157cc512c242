"""
Bootstrap sequencer.

Builds the loading-scope hierarchy for the host application and drives
its lifecycle. The host's own modules live in the "server" scope;
applications get the "shared" scope as parent. Both delegate to the
"common" scope, so nothing loaded for applications can see host
internals.

Sequence:
    UNINITIALIZED -> CONFIG_LOADED -> FOUNDATION_SCOPE_BUILT
        -> HOST_SCOPE_BUILT -> SHARED_SCOPE_BUILT -> READY

Loading the configuration cannot fail (it degrades to defaults). Any
failure after that is terminal: scopes built so far are closed and the
error propagates.
"""

import os
from collections.abc import MutableMapping
from enum import Enum
from pathlib import Path
from typing import Optional, Sequence, Union

from core.config import Settings, get_settings
from core.directories import BaseDirectories, directories_from_settings
from core.logging import get_logger
from core.placeholders import PlaceholderResolver
from core.properties import ConfigSource, ProcessConfig
from manager.host import HostApplication
from tools.loading import (
    BootstrapError,
    HostLoadFailed,
    LoadingScope,
    ScopeBuilder,
    SystemScope,
    create_loading_scope,
    use_scope,
)
from tools.loading.factory import ScopeConstructor


logger = get_logger(__name__)


HOST_ENTRY_POINT_PROPERTY = "host.entrypoint"
DEFAULT_HOST_ENTRY_POINT = "catalina.startup:Catalina"


class Layer(str, Enum):
    """Named stages of the scope hierarchy, in build order."""
    FOUNDATION = "common"
    HOST = "server"
    SHARED = "shared"


class BootstrapState(str, Enum):
    """Progress of the bootstrap sequence."""
    UNINITIALIZED = "uninitialized"
    CONFIG_LOADED = "config_loaded"
    FOUNDATION_SCOPE_BUILT = "foundation_scope_built"
    HOST_SCOPE_BUILT = "host_scope_built"
    SHARED_SCOPE_BUILT = "shared_scope_built"
    READY = "ready"
    FAILED = "failed"


class Bootstrap:
    """
    Assembles the execution environment and hands control to the host.

    Usage:
        bootstrap = Bootstrap()
        bootstrap.load(["-config", "conf/server.toml"])
        bootstrap.start()
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        environ: Optional[MutableMapping[str, str]] = None,
        cwd: Optional[Union[str, Path]] = None,
        construct: ScopeConstructor = create_loading_scope,
    ):
        """
        Args:
            settings: Process overrides (default: cached settings)
            environ: Environment store configuration is published into
            cwd: Working directory used for home directory discovery
            construct: Loading-scope constructor
        """
        self.settings = settings or get_settings()
        self.environ = os.environ if environ is None else environ
        self.cwd = cwd
        self.construct = construct

        self.state = BootstrapState.UNINITIALIZED
        self.directories: Optional[BaseDirectories] = None
        self.config: Optional[ProcessConfig] = None
        self.scopes: dict[Layer, LoadingScope] = {}
        self.host: Optional[HostApplication] = None

    # ------------------------------------------------------------------
    # Sequence
    # ------------------------------------------------------------------

    def load_configuration(self) -> ProcessConfig:
        """Resolve directories and load configuration (once)."""
        if self.config is not None:
            return self.config

        self.directories = directories_from_settings(self.settings, cwd=self.cwd)
        source = ConfigSource(
            self.directories,
            config_url=self.settings.catalina_config,
            environ=self.environ,
        )
        self.config = source.load()
        self._transition(BootstrapState.CONFIG_LOADED)
        return self.config

    def init_scopes(self) -> dict[Layer, LoadingScope]:
        """
        Build the common, server and shared scopes.

        Raises:
            BootstrapError: If a layer cannot be built; partial scopes
                are closed first
        """
        self._ensure_not_failed()
        if Layer.SHARED in self.scopes:
            return dict(self.scopes)

        config = self.load_configuration()
        resolver = PlaceholderResolver(self.directories, config, self.environ)
        builder = ScopeBuilder(config, resolver, self.construct)

        try:
            common = builder.build(Layer.FOUNDATION.value, None)
            if common is None:
                # No foundation repositories; we might be in a single-scope setup
                common = SystemScope()
            self.scopes[Layer.FOUNDATION] = common
            self._transition(BootstrapState.FOUNDATION_SCOPE_BUILT)

            self.scopes[Layer.HOST] = builder.build(Layer.HOST.value, common)
            self._transition(BootstrapState.HOST_SCOPE_BUILT)

            self.scopes[Layer.SHARED] = builder.build(Layer.SHARED.value, common)
            self._transition(BootstrapState.SHARED_SCOPE_BUILT)
        except BootstrapError as e:
            self._fail("Loading scope creation failed", e)
            raise

        return dict(self.scopes)

    def init(self) -> HostApplication:
        """
        Build all scopes and instantiate the host from the server scope.

        Raises:
            BootstrapError: If a scope or the host cannot be loaded
        """
        if self.host is not None:
            return self.host

        self.init_scopes()
        host_scope = self.scopes[Layer.HOST]
        reference = self.config.get_property(HOST_ENTRY_POINT_PROPERTY) or DEFAULT_HOST_ENTRY_POINT

        logger.debug("Loading host entry point", entrypoint=reference, scope=host_scope.name)
        with use_scope(host_scope):
            try:
                entry_point = host_scope.load_attribute(reference)
            except (ImportError, AttributeError) as e:
                error = HostLoadFailed(f"Cannot load host entry point [{reference}]: {e}")
                self._fail("Host loading failed", error)
                raise error from e
            host = entry_point(self.scopes[Layer.SHARED])

        if not isinstance(host, HostApplication):
            error = HostLoadFailed(
                f"Host entry point [{reference}] returned {type(host).__name__}, "
                "which does not implement init/start/stop/is_ready"
            )
            self._fail("Host loading failed", error)
            raise error

        self.host = host
        self._transition(BootstrapState.READY)
        return host

    # ------------------------------------------------------------------
    # Host lifecycle
    # ------------------------------------------------------------------

    def load(self, arguments: Optional[Sequence[str]] = None) -> None:
        """Initialise the host with command line arguments."""
        host = self.init()
        logger.debug("Calling host init", arguments=list(arguments or []))
        with use_scope(self.scopes[Layer.HOST]):
            host.init(list(arguments or []))

    def start(self) -> None:
        host = self.init()
        with use_scope(self.scopes[Layer.HOST]):
            host.start()

    def stop(self) -> None:
        host = self.init()
        with use_scope(self.scopes[Layer.HOST]):
            host.stop()

    def config_test(self, arguments: Optional[Sequence[str]] = None) -> bool:
        """Initialise the host and report whether it is ready."""
        self.load(arguments)
        return self.host.is_ready()

    def close(self) -> None:
        """
        Close every scope built so far, most recent first.

        The loaded configuration is kept, so a later init() rebuilds the
        scopes from it.
        """
        closed: list[LoadingScope] = []
        for layer in reversed(list(self.scopes)):
            scope = self.scopes[layer]
            if any(scope is seen for seen in closed):
                continue
            scope.close()
            closed.append(scope)
        self.scopes.clear()
        self.host = None
        if self.config is not None and self.state != BootstrapState.FAILED:
            self._transition(BootstrapState.CONFIG_LOADED)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _transition(self, state: BootstrapState) -> None:
        logger.debug("Bootstrap state changed", previous=self.state.value, state=state.value)
        self.state = state

    def _fail(self, message: str, error: BootstrapError) -> None:
        logger.error(message, state=self.state.value, error=str(error))
        self.close()
        self.state = BootstrapState.FAILED

    def _ensure_not_failed(self) -> None:
        if self.state == BootstrapState.FAILED:
            raise BootstrapError("Bootstrap already failed; restart the process")
