"""
``${name}`` substitution in configuration values.

``catalina.home`` and ``catalina.base`` are answered straight from the
resolved directories; every other name goes through the loaded
configuration and then the resolver's own environment store. Names that cannot be
resolved are left in place.
"""

import os
from collections.abc import Mapping
from typing import Optional

from core.directories import BASE_PROPERTY, HOME_PROPERTY, BaseDirectories
from core.properties import ProcessConfig


OPEN_MARKER = "${"
CLOSE_MARKER = "}"


class PlaceholderResolver:
    """
    Single-pass placeholder expansion.

    Substituted values are not rescanned, so ``resolve`` never recurses.
    An unterminated ``${`` stops the scan and the rest of the string is
    copied through as-is.
    """

    def __init__(
        self,
        directories: BaseDirectories,
        config: Optional[ProcessConfig] = None,
        environ: Optional[Mapping[str, str]] = None,
    ):
        self.directories = directories
        self.config = config
        self.environ = os.environ if environ is None else environ

    def lookup(self, name: str) -> Optional[str]:
        """Replacement for ``name``, or None when it cannot be resolved."""
        if not name:
            return None
        if name == HOME_PROPERTY:
            return self.directories.home_path
        if name == BASE_PROPERTY:
            return self.directories.base_path
        if self.config is not None:
            value = self.config.get_property(name)
            if value is not None:
                return value
        return self.environ.get(name)

    def resolve(self, raw: str) -> str:
        start = raw.find(OPEN_MARKER)
        if start < 0:
            return raw

        parts: list[str] = []
        end = -1
        while start >= 0:
            parts.append(raw[end + 1:start])
            end = raw.find(CLOSE_MARKER, start + len(OPEN_MARKER))
            if end < 0:
                # Unterminated: copy the remainder verbatim
                end = start - 1
                break
            name = raw[start + len(OPEN_MARKER):end]
            replacement = self.lookup(name)
            parts.append(replacement if replacement is not None else raw[start:end + 1])
            start = raw.find(OPEN_MARKER, end + 1)

        parts.append(raw[end + 1:])
        return "".join(parts)
