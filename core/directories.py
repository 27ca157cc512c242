"""
Home and base directory resolution.

``catalina.home`` is the installation (binary) directory and
``catalina.base`` the instance directory. They are computed once, before
any configuration is read, and never change afterwards.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Optional, Union

from core.logging import get_logger


if TYPE_CHECKING:
    from core.config import Settings


logger = get_logger(__name__)


HOME_PROPERTY = "catalina.home"
BASE_PROPERTY = "catalina.base"

# Present in the bin/ directory of a normal installation
MARKER_FILE = "bootstrap.pyz"


PathLike = Union[str, Path]


@dataclass(frozen=True)
class BaseDirectories:
    """Resolved home and base directories. Home and base may be the same."""
    home: Path
    base: Path

    @property
    def home_path(self) -> str:
        return str(self.home)

    @property
    def base_path(self) -> str:
        return str(self.base)

    def as_properties(self) -> dict[str, str]:
        """Reserved keys as they are published into configuration."""
        return {
            HOME_PROPERTY: self.home_path,
            BASE_PROPERTY: self.base_path,
        }


def canonical(path: PathLike) -> Path:
    """Canonical form of ``path``, or its absolute form if that fails."""
    candidate = Path(path)
    try:
        return candidate.resolve()
    except OSError:
        return candidate.absolute()


def resolve_directories(
    home: Optional[PathLike] = None,
    base: Optional[PathLike] = None,
    cwd: Optional[PathLike] = None,
) -> BaseDirectories:
    """
    Resolve the home and base directories.

    Home falls back from the explicit override, to the parent of the
    working directory when it holds the bootstrap marker file, to the
    working directory itself. Base defaults to home.

    Args:
        home: Explicit home directory override
        base: Explicit base directory override
        cwd: Working directory (defaults to the process working directory)
    """
    user_dir = Path(cwd) if cwd is not None else Path.cwd()

    if home:
        home_dir = canonical(home)
    elif (user_dir / MARKER_FILE).exists():
        home_dir = canonical(user_dir / "..")
    else:
        home_dir = canonical(user_dir)

    base_dir = canonical(base) if base else home_dir

    logger.debug(
        "Resolved bootstrap directories",
        home=str(home_dir),
        base=str(base_dir),
    )
    return BaseDirectories(home=home_dir, base=base_dir)


def directories_from_settings(
    settings: "Settings",
    cwd: Optional[PathLike] = None,
) -> BaseDirectories:
    """Resolve directories using the overrides carried by settings."""
    return resolve_directories(
        home=settings.catalina_home,
        base=settings.catalina_base,
        cwd=cwd,
    )
