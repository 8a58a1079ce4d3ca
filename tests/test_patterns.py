import pytest

from treeowners.errors import ConfigError
from treeowners.patterns import (
    FIND_OWNERS_GLOB,
    GLOB,
    SIMPLE,
    compile_pattern,
    get_matcher,
    replace_single_star_with_double_star,
)


def test_single_star_stays_in_segment():
    assert GLOB.matches("*.md", "README.md")
    assert not GLOB.matches("*.md", "foo/README.md")


def test_double_star_crosses_dirs():
    assert GLOB.matches("**.md", "README.md")
    assert GLOB.matches("**.md", "foo/README.md")
    assert GLOB.matches("foo/**", "foo/a/b/README.md")


def test_malformed_glob_matches_nothing():
    assert not GLOB.matches("{unterminated", "unterminated")
    assert not GLOB.matches("[abc", "a")


def test_classes_and_alternation():
    assert GLOB.matches("{foo,bar}.txt", "bar.txt")
    assert not GLOB.matches("{foo,bar}.txt", "baz.txt")
    assert GLOB.matches("file[0-9].txt", "file7.txt")
    assert not GLOB.matches("file[!0-9].txt", "file7.txt")
    assert GLOB.matches("?.txt", "a.txt")
    assert not GLOB.matches("?.txt", "ab.txt")


def test_absolute_path_is_rejected():
    with pytest.raises(ValueError):
        GLOB.matches("*.md", "/README.md")


def test_slash_patterns_anchor_to_root():
    p = compile_pattern("docs/*")
    assert p.matches("docs/a.md")
    assert not p.matches("docs/a/b.md")
    assert not p.matches("x/docs/a.md")


def test_find_owners_glob_single_star_crosses_dirs():
    assert replace_single_star_with_double_star("*.md") == "**.md"
    assert replace_single_star_with_double_star("a/**/b*") == "a/**/b**"
    assert FIND_OWNERS_GLOB.matches("*.md", "docs/README.md")
    assert not FIND_OWNERS_GLOB.matches("*.md", "docs/README.txt")


def test_simple_matcher():
    assert SIMPLE.matches("*.md", "README.md")
    assert not SIMPLE.matches("*.md", "docs/README.md")
    assert SIMPLE.matches("docs/...", "docs/a/b.md")
    assert SIMPLE.matches("{a}.md", "{a}.md")


def test_get_matcher():
    assert get_matcher("find-owners-glob") is FIND_OWNERS_GLOB
    assert get_matcher("GLOB") is GLOB
    with pytest.raises(ConfigError):
        get_matcher("regex")
