from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Protocol

from .errors import ConfigError
from .paths import require_relative

logger = logging.getLogger(__name__)


class PatternSyntaxError(ValueError):
    pass


@dataclass(frozen=True)
class CompiledPattern:
    raw: str
    regex: re.Pattern[str]

    def matches(self, path: str) -> bool:
        return self.regex.fullmatch(path) is not None


def _translate_class(pat: str, i: int) -> tuple[str, int]:
    """Translates the character class starting at ``pat[i] == '['``.

    Returns the regex and the index of the closing ``]``.
    """
    L = len(pat)
    j = i + 1
    out = ["["]
    if j < L and pat[j] in ("!", "^"):
        out.append("^")
        j += 1
    first = True
    while j < L:
        c = pat[j]
        if c == "]" and not first:
            out.append("]")
            return "".join(out), j
        if c == "/":
            raise PatternSyntaxError(f"explicit name separator in class: {pat!r}")
        if c == "\\":
            j += 1
            if j >= L:
                raise PatternSyntaxError(f"no character to escape: {pat!r}")
            out.append(re.escape(pat[j]))
        elif c == "-" and not first and j + 1 < L and pat[j + 1] != "]":
            out.append("-")
        else:
            out.append(re.escape(c))
        first = False
        j += 1
    raise PatternSyntaxError(f"missing ']': {pat!r}")


def _glob_to_regex(pat: str) -> str:
    """Translate a glob to a regex.

    Supported:
      - *  (within a segment)
      - ** (across directories)
      - ?  (single char within a segment)
      - [] character classes, '!' negates
      - {a,b} alternation (not nested)
      - backslash escapes
    """
    out: list[str] = []
    in_group = False
    i = 0
    L = len(pat)

    while i < L:
        c = pat[i]

        if c == "*":
            # ** => match across dirs
            if i + 1 < L and pat[i + 1] == "*":
                # collapse consecutive *'s in a ** run
                while i + 1 < L and pat[i + 1] == "*":
                    i += 1
                out.append(".*")
            else:
                out.append("[^/]*")
        elif c == "?":
            out.append("[^/]")
        elif c == "[":
            cls, i = _translate_class(pat, i)
            out.append(cls)
        elif c == "{":
            if in_group:
                raise PatternSyntaxError(f"cannot nest groups: {pat!r}")
            in_group = True
            out.append("(?:")
        elif c == "}" and in_group:
            in_group = False
            out.append(")")
        elif c == "," and in_group:
            out.append("|")
        elif c == "\\":
            i += 1
            if i >= L:
                raise PatternSyntaxError(f"no character to escape: {pat!r}")
            out.append(re.escape(pat[i]))
        else:
            out.append(re.escape(c))

        i += 1

    if in_group:
        raise PatternSyntaxError(f"missing '}}': {pat!r}")

    return "".join(out)


@lru_cache(maxsize=4096)
def compile_pattern(pattern: str) -> CompiledPattern:
    try:
        compiled = re.compile(_glob_to_regex(pattern), re.DOTALL)
    except re.error as e:
        raise PatternSyntaxError(f"invalid pattern '{pattern}': {e}") from e
    return CompiledPattern(raw=pattern, regex=compiled)


class PathExpressionMatcher(Protocol):
    name: str

    def matches(self, path_expression: str, relative_path: str) -> bool:
        ...


class GlobMatcher:
    """Plain globs: '*' stays within one path segment, '**' crosses segments."""

    name = "glob"

    def matches(self, path_expression: str, relative_path: str) -> bool:
        path = require_relative(relative_path, "relative_path")
        try:
            is_matching = compile_pattern(path_expression).matches(path)
        except PatternSyntaxError as e:
            logger.debug("glob %s is invalid: %s", path_expression, e)
            return False
        logger.debug("path %s %s matching %s", path, "is" if is_matching else "is not", path_expression)
        return is_matching


def replace_single_star_with_double_star(glob: str) -> str:
    """Replaces any single '*' by '**'; runs like '**' or '***' stay unchanged."""
    return re.sub(r"(?<!\*)\*(?!\*)", "**", glob)


class FindOwnersGlobMatcher:
    """Globs as the find-owners tool reads them: a single '*' also crosses segments."""

    name = "find_owners_glob"

    def matches(self, path_expression: str, relative_path: str) -> bool:
        adapted = replace_single_star_with_double_star(path_expression)
        logger.debug("adapted glob = %s", adapted)
        return GLOB.matches(adapted, relative_path)


class SimplePathExpressionMatcher:
    """'*' within one segment, '...' across segments; braces and brackets are literal."""

    name = "simple"

    def matches(self, path_expression: str, relative_path: str) -> bool:
        glob = path_expression
        for ch in "{}[]":
            glob = glob.replace(ch, "\\" + ch)
        return GLOB.matches(glob.replace("...", "**"), relative_path)


GLOB = GlobMatcher()
FIND_OWNERS_GLOB = FindOwnersGlobMatcher()
SIMPLE = SimplePathExpressionMatcher()

MATCHERS: dict[str, PathExpressionMatcher] = {m.name: m for m in (GLOB, FIND_OWNERS_GLOB, SIMPLE)}


def get_matcher(name: str) -> PathExpressionMatcher:
    try:
        return MATCHERS[name.strip().lower().replace("-", "_")]
    except KeyError:
        raise ConfigError(f"unknown path expressions '{name}' (expected one of: {', '.join(sorted(MATCHERS))})") from None
