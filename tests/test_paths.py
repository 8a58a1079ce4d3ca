from pathlib import Path

import pytest

from treeowners.paths import (
    absolute_path,
    ancestor_folders,
    depth,
    full_ref,
    join_folder,
    normalize_repo_path,
    parent_folder,
    relativize,
    require_absolute,
    short_ref,
)


def test_normalize_repo_path_keeps_dotfiles():
    p = normalize_repo_path(".github/workflows/ci.yml", repo_root=Path("/tmp/irrelevant"))
    assert p == ".github/workflows/ci.yml"


def test_absolute_path():
    assert absolute_path("foo/bar/") == "/foo/bar"
    assert absolute_path("/foo//bar") == "/foo/bar"
    assert absolute_path("") == "/"


def test_require_absolute():
    assert require_absolute("/foo/") == "/foo"
    with pytest.raises(ValueError):
        require_absolute("foo")
    with pytest.raises(TypeError):
        require_absolute(None)


def test_folders():
    assert parent_folder("/foo/bar/baz.md") == "/foo/bar"
    assert parent_folder("/a.md") == "/"
    assert ancestor_folders("/foo/bar") == ["/foo/bar", "/foo", "/"]
    assert ancestor_folders("/") == ["/"]


def test_relativize_and_depth():
    assert relativize("/foo", "/foo/bar/baz.md") == "bar/baz.md"
    assert relativize("/", "/a.md") == "a.md"
    assert depth("/") == 0
    assert depth("/foo/bar/baz.md") == 3


def test_join_folder():
    assert join_folder("/foo", "../OWNERS") == "/OWNERS"
    assert join_folder("/foo", "bar/OWNERS") == "/foo/bar/OWNERS"
    assert join_folder("/foo", "/x/OWNERS") == "/x/OWNERS"


def test_refs():
    assert full_ref("main") == "refs/heads/main"
    assert full_ref("refs/meta/config") == "refs/meta/config"
    assert short_ref("refs/heads/main") == "main"
    assert short_ref("refs/meta/config") == "refs/meta/config"
