"""
Bootstrap configuration loading.

ConfigSource finds catalina.properties (explicit URL, then
``{base}/conf/catalina.properties``, then the copy bundled with this
package), parses it and publishes every key into the environment store
so that code started later can observe it.

Loading never fails the process: when nothing can be read the result
only carries the reserved directory keys.
"""

import os
import re
import string
from collections.abc import Iterator, Mapping, MutableMapping
from importlib import resources
from pathlib import Path
from typing import Optional
from urllib.request import urlopen

from core.directories import BaseDirectories
from core.logging import get_logger


logger = get_logger(__name__)


CONFIG_PROPERTY = "catalina.config"
CONFIG_FILE_NAME = "catalina.properties"
CONFIG_DIR_NAME = "conf"

# Tried in order; latin-1 accepts any byte sequence
ENCODINGS = ("utf-8-sig", "latin-1")

_LINE_BREAK = re.compile(r"\r\n|\r|\n")
_WHITESPACE = " \t\f"
_SEPARATORS = "=:"
_ESCAPES = {"t": "\t", "n": "\n", "r": "\r", "f": "\f"}


class ConfigUnavailable(Exception):
    """No configuration origin could be opened or parsed."""
    pass


class PropertiesFormatError(ValueError):
    """The properties text could not be parsed."""
    pass


class ProcessConfig(Mapping[str, str]):
    """
    Read-only view of the loaded configuration.

    Lookups through ``lookup`` fall back to the environment store, which
    is how placeholders reach values set outside the properties file.
    """

    def __init__(
        self,
        properties: Optional[Mapping[str, str]] = None,
        environ: Optional[Mapping[str, str]] = None,
        origin: Optional[str] = None,
    ):
        self._properties = dict(properties or {})
        self._environ = os.environ if environ is None else environ
        self.origin = origin

    def __getitem__(self, key: str) -> str:
        return self._properties[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._properties)

    def __len__(self) -> int:
        return len(self._properties)

    def __repr__(self) -> str:
        return f"ProcessConfig(origin={self.origin!r}, keys={len(self)})"

    @property
    def is_loaded(self) -> bool:
        """Whether a configuration origin was actually read."""
        return self.origin is not None

    def get_property(self, name: str) -> Optional[str]:
        """Value loaded for ``name``, or None."""
        return self._properties.get(name)

    def lookup(self, name: str) -> Optional[str]:
        """Loaded value for ``name``, else the environment store's value."""
        value = self._properties.get(name)
        if value is None:
            value = self._environ.get(name)
        return value


def decode_properties(data: bytes) -> str:
    """Decode properties bytes, tolerating BOMs and legacy encodings."""
    for encoding in ENCODINGS:
        try:
            return data.decode(encoding)
        except UnicodeDecodeError:
            continue
    raise PropertiesFormatError("Could not decode properties with any supported encoding")


def _logical_lines(text: str) -> Iterator[str]:
    """Yield logical lines, joining backslash continuations and dropping comments."""
    pending: Optional[str] = None
    for natural in _LINE_BREAK.split(text):
        line = natural.lstrip(_WHITESPACE)
        if pending is None:
            if not line or line[0] in "#!":
                continue
        else:
            line = pending + line

        trailing = len(line) - len(line.rstrip("\\"))
        if trailing % 2 == 1:
            pending = line[:-1]
            continue

        pending = None
        yield line

    if pending is not None:
        yield pending


def _unescape(text: str) -> str:
    out: list[str] = []
    index = 0
    while index < len(text):
        char = text[index]
        index += 1
        if char != "\\" or index >= len(text):
            out.append(char)
            continue
        char = text[index]
        index += 1
        if char == "u":
            digits = text[index:index + 4]
            if len(digits) != 4 or not all(c in string.hexdigits for c in digits):
                raise PropertiesFormatError(f"Malformed \\uxxxx encoding: {text!r}")
            out.append(chr(int(digits, 16)))
            index += 4
        else:
            out.append(_ESCAPES.get(char, char))
    return "".join(out)


def _split_entry(line: str) -> tuple[str, str]:
    """Split a logical line at the first unescaped separator or whitespace."""
    index = 0
    while index < len(line):
        char = line[index]
        if char == "\\":
            index += 2
            continue
        if char in _SEPARATORS or char in _WHITESPACE:
            break
        index += 1

    key = line[:index]
    rest = line[index:].lstrip(_WHITESPACE)
    if rest and rest[0] in _SEPARATORS:
        rest = rest[1:].lstrip(_WHITESPACE)
    return key, rest


def parse_properties(text: str) -> dict[str, str]:
    """
    Parse properties-file text.

    Supports ``key=value``, ``key:value`` and ``key value`` entries,
    ``#``/``!`` comment lines, backslash line continuations and the
    usual escape sequences.

    Raises:
        PropertiesFormatError: On a malformed \\uxxxx escape
    """
    properties: dict[str, str] = {}
    for line in _logical_lines(text):
        key, value = _split_entry(line)
        properties[_unescape(key)] = _unescape(value)
    return properties


class ConfigSource:
    """
    Locates, loads and publishes the bootstrap configuration.

    Usage:
        directories = resolve_directories()
        config = ConfigSource(directories, config_url=settings.catalina_config).load()
        config.get_property("common.loader")
    """

    def __init__(
        self,
        directories: BaseDirectories,
        config_url: Optional[str] = None,
        environ: Optional[MutableMapping[str, str]] = None,
        embedded: bool = True,
    ):
        """
        Args:
            directories: Resolved home/base directories
            config_url: Explicit configuration location, tried first
            environ: Environment store to publish into (default os.environ)
            embedded: Whether the bundled default may be used as last resort
        """
        self.directories = directories
        self.config_url = config_url
        self.environ = os.environ if environ is None else environ
        self.embedded = embedded

    @property
    def conf_file(self) -> Path:
        return self.directories.base / CONFIG_DIR_NAME / CONFIG_FILE_NAME

    def load(self) -> ProcessConfig:
        """
        Load configuration from the first available origin.

        Never raises for I/O or format problems: they are logged and the
        returned configuration only carries the directory keys.
        """
        properties = self.directories.as_properties()
        origin: Optional[str] = None

        try:
            origin, data = self._read()
            properties.update(parse_properties(decode_properties(data)))
        except (ConfigUnavailable, PropertiesFormatError) as e:
            logger.warning(
                "Failed to load catalina.properties, using defaults",
                origin=origin,
                error=str(e),
            )
            properties = self.directories.as_properties()
            origin = None

        self._publish(properties)

        if origin is not None:
            logger.info("Loaded configuration", origin=origin, keys=len(properties))

        return ProcessConfig(properties, environ=self.environ, origin=origin)

    def _read(self) -> tuple[str, bytes]:
        """Return (origin, bytes) for the first origin that can be read."""
        if self.config_url:
            try:
                with urlopen(self.config_url) as response:
                    return self.config_url, response.read()
            except (OSError, ValueError) as e:
                logger.debug("Config URL not readable", url=self.config_url, error=str(e))

        try:
            return str(self.conf_file), self.conf_file.read_bytes()
        except OSError as e:
            logger.debug("Config file not readable", path=str(self.conf_file), error=str(e))

        if self.embedded:
            bundled = resources.files(__package__).joinpath(CONFIG_FILE_NAME)
            try:
                return f"embedded:{CONFIG_FILE_NAME}", bundled.read_bytes()
            except OSError as e:
                logger.debug("Embedded config not readable", error=str(e))

        raise ConfigUnavailable("No configuration origin could be read")

    def _publish(self, properties: Mapping[str, str]) -> None:
        """Mirror every key into the environment store."""
        for name, value in properties.items():
            try:
                self.environ[name] = value
            except ValueError as e:
                # os.environ rejects names containing "=" or NUL
                logger.debug("Property not published", name=name, error=str(e))
