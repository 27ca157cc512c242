"""
Contract between the bootstrap and the host application.

The host's entry point lives in the host scope and is referenced as
``"module:attribute"`` (``host.entrypoint``). It is called with the
shared scope, the parent for any code the host loads on behalf of
users, and must return an object implementing HostApplication.
"""

from typing import Callable, Protocol, runtime_checkable

from tools.loading.base import LoadingScope


@runtime_checkable
class HostApplication(Protocol):
    """Lifecycle the bootstrap drives."""

    def init(self, arguments: list[str]) -> None:
        """Prepare the host from command line arguments."""
        ...

    def start(self) -> None:
        ...

    def stop(self) -> None:
        ...

    def is_ready(self) -> bool:
        """Whether ``init`` produced a usable configuration."""
        ...


HostEntryPoint = Callable[[LoadingScope], HostApplication]
