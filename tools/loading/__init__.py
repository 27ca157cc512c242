"""
Layered loading scopes.

Provides:
- Repository list parsing and classification
- Isolated, parent-delegating loading scopes
- ScopeBuilder, which turns a layer's configuration into a scope
"""

from tools.loading.base import (
    ARCHIVE_SUFFIXES,
    BootstrapError,
    HostLoadFailed,
    LoadingScope,
    MalformedPathList,
    Repository,
    RepositoryType,
    ScopeConstructionFailed,
)
from tools.loading.factory import (
    ScopeBuilder,
    classify_repository,
    create_loading_scope,
    loader_property,
)
from tools.loading.paths import parse_paths
from tools.loading.scope import (
    IsolatedScope,
    SystemScope,
    current_scope,
    use_scope,
)

__all__ = [
    # Contract and types
    "ARCHIVE_SUFFIXES",
    "LoadingScope",
    "Repository",
    "RepositoryType",
    # Errors
    "BootstrapError",
    "HostLoadFailed",
    "MalformedPathList",
    "ScopeConstructionFailed",
    # Construction
    "ScopeBuilder",
    "classify_repository",
    "create_loading_scope",
    "loader_property",
    "parse_paths",
    # Implementations
    "IsolatedScope",
    "SystemScope",
    "current_scope",
    "use_scope",
]
