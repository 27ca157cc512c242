"""
Tests for repository classification and ScopeBuilder.
"""

import pytest

from core.placeholders import PlaceholderResolver
from core.properties import ProcessConfig
from tools.loading import (
    IsolatedScope,
    MalformedPathList,
    Repository,
    RepositoryType,
    ScopeBuilder,
    ScopeConstructionFailed,
    SystemScope,
    classify_repository,
)


# =========================================
# Classification
# =========================================

@pytest.mark.parametrize(
    "path, expected",
    [
        ("/libs/*.jar", Repository("/libs/", RepositoryType.ARCHIVE_SET)),
        ("/libs/x.jar", Repository("/libs/x.jar", RepositoryType.ARCHIVE)),
        ("/libs/", Repository("/libs/", RepositoryType.DIRECTORY)),
        ("http://host/x.jar", Repository("http://host/x.jar", RepositoryType.URL)),
        ("/libs/*.zip", Repository("/libs/", RepositoryType.ARCHIVE_SET)),
        ("/libs/tool.whl", Repository("/libs/tool.whl", RepositoryType.ARCHIVE)),
        ("/e*.jar", Repository("/e", RepositoryType.ARCHIVE_SET)),
        ("https://host:8443/a/b.zip", Repository("https://host:8443/a/b.zip", RepositoryType.URL)),
        ("ftp://mirror/x.zip", Repository("ftp://mirror/x.zip", RepositoryType.URL)),
        ("file:///opt/libs/", Repository("file:///opt/libs/", RepositoryType.URL)),
        ("C:/libs/x.zip", Repository("C:/libs/x.zip", RepositoryType.ARCHIVE)),
        ("gopher://host/x.jar", Repository("gopher://host/x.jar", RepositoryType.ARCHIVE)),
        ("relative/dir", Repository("relative/dir", RepositoryType.DIRECTORY)),
    ],
)
def test_classify_repository(path, expected):
    assert classify_repository(path) == expected


# =========================================
# ScopeBuilder
# =========================================

class RecordingConstructor:
    """Stands in for create_loading_scope and records its arguments."""

    def __init__(self):
        self.calls = []

    def __call__(self, name, repositories, parent):
        self.calls.append((name, list(repositories), parent))
        return IsolatedScope(name, [], parent)


def make_builder(directories, environ, properties, construct=None):
    config = ProcessConfig(properties, environ=environ)
    resolver = PlaceholderResolver(directories, config, environ)
    if construct is None:
        return ScopeBuilder(config, resolver)
    return ScopeBuilder(config, resolver, construct)


@pytest.mark.parametrize("properties", [{}, {"common.loader": ""}])
@pytest.mark.parametrize("parent", [None, SystemScope()])
def test_unconfigured_layer_returns_parent(directories, environ, properties, parent):
    construct = RecordingConstructor()
    builder = make_builder(directories, environ, properties, construct)

    assert builder.build("common", parent) is parent
    assert construct.calls == []


def test_build_expands_parses_and_classifies(directories, environ):
    construct = RecordingConstructor()
    builder = make_builder(
        directories,
        environ,
        {
            "lib.dir": "/usr/lib/app",
            "server.loader": '"${catalina.home}/lib",${lib.dir}/*.zip,${lib.dir}/core.jar,http://repo/x.zip',
        },
        construct,
    )
    parent = SystemScope()

    scope = builder.build("server", parent)

    assert scope.parent is parent
    assert scope.name == "server"
    name, repositories, passed_parent = construct.calls[0]
    assert name == "server"
    assert passed_parent is parent
    assert repositories == [
        Repository(f"{directories.home}/lib", RepositoryType.DIRECTORY),
        Repository("/usr/lib/app/", RepositoryType.ARCHIVE_SET),
        Repository("/usr/lib/app/core.jar", RepositoryType.ARCHIVE),
        Repository("http://repo/x.zip", RepositoryType.URL),
    ]


def test_malformed_list_fails_before_construction(directories, environ):
    construct = RecordingConstructor()
    builder = make_builder(directories, environ, {"common.loader": '/a"b'}, construct)

    with pytest.raises(MalformedPathList):
        builder.build("common", None)
    assert construct.calls == []


def test_missing_directory_is_fatal(directories, environ):
    builder = make_builder(
        directories,
        environ,
        {"common.loader": "${catalina.base}/does-not-exist"},
    )

    with pytest.raises(ScopeConstructionFailed) as exc_info:
        builder.build("common", None)

    assert exc_info.value.repository.type == RepositoryType.DIRECTORY
    assert "does-not-exist" in str(exc_info.value)


def test_builds_real_scope(directories, environ, write_tree):
    write_tree(directories.home / "lib", {"greeting.py": "TEXT = 'hello'\n"})
    builder = make_builder(directories, environ, {"common.loader": "${catalina.home}/lib"})

    scope = builder.build("common", None)
    try:
        assert scope.load_module("greeting").TEXT == "hello"
    finally:
        scope.close()
