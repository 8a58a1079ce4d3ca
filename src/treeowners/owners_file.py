"""Owner config files in the find-owners syntax.

Example::

    # comments start with '#'
    set noparent
    include other-project:stable:/common/OWNERS
    file: /docs/OWNERS
    alice@example.com
    *
    per-file *.md,docs/**=bob@example.com,carol@example.com
    per-file BUILD=set noparent
    per-file *.proto=file: /api/OWNERS
"""
from __future__ import annotations

import re

from .errors import InvalidOwnerConfigError
from .model import ImportDeclaration, ImportMode, OwnerConfig, OwnerConfigKey, OwnerRuleSet
from .paths import short_ref

SET_NOPARENT = "set noparent"

_COMMA = r"\s*,\s*"
_COLON = r"\s*:\s*"
_BOL = r"^\s*"
_EOL = r"\s*(#.*)?$"
_GLOB = r"[^\s,=]+"
_EMAIL_OR_STAR = r"([^\s<>@,]+@[^\s<>@#,]+|\*)"
_EMAIL_LIST = f"({_EMAIL_OR_STAR}({_COMMA}{_EMAIL_OR_STAR})*)"
_PROJECT = f"([^\\s:]+{_COLON})?"
_BRANCH = f"([^\\s:]+{_COLON})?"
_FILE_PATH = r"([^\s:#]+)"
_REFERENCE = _PROJECT + _BRANCH + _FILE_PATH
_SET_NOPARENT = r"set\s+noparent"

_PAT_COMMENT = re.compile(_BOL + _EOL)
_PAT_EMAIL = re.compile(_BOL + _EMAIL_OR_STAR + _EOL)
_PAT_NO_PARENT = re.compile(_BOL + _SET_NOPARENT + _EOL)
_PAT_INCLUDE = re.compile(_BOL + r"(file:\s*|include\s+)" + _REFERENCE + _EOL)
_PAT_PER_FILE = re.compile(_BOL + r"per-file\s+([^=#]+)=\s*([^#]+)" + _EOL)
_PAT_PER_FILE_OWNERS = re.compile(f"({_EMAIL_LIST}|{_SET_NOPARENT}|file:\\s*{_REFERENCE})")
_PAT_PER_FILE_INCLUDE = re.compile(f"include\\s+{_REFERENCE}")
_PAT_GLOBS = re.compile(f"{_GLOB}({_COMMA}{_GLOB})*")


def split_globs(comma_separated_globs: str) -> list[str]:
    """Splits at commas that are not inside ``{...}`` or ``[...]``."""
    globs: list[str] = []
    current: list[str] = []
    curly = square = 0
    for c in comma_separated_globs:
        if c == "," and curly == 0 and square == 0:
            globs.append("".join(current))
            current = []
            continue
        current.append(c)
        if c == "{":
            curly += 1
        elif c == "}" and curly > 0:
            curly -= 1
        elif c == "[":
            square += 1
        elif c == "]" and square > 0:
            square -= 1
    if current:
        globs.append("".join(current))
    return globs


def _remove_extra_spaces(s: str) -> str:
    return re.sub(r"\s*:\s*", ":", re.sub(r"\s+", " ", s.strip()))


def parse_import(line: str) -> ImportDeclaration | None:
    m = _PAT_INCLUDE.fullmatch(line)
    if not m:
        return None
    mode = ImportMode.ALL if m.group(1).strip() == "include" else ImportMode.GLOBAL_RULE_SETS_ONLY
    project = branch = None
    # the branch can only be given together with the project
    if m.group(2):
        project = re.split(_COLON, m.group(2))[0].strip()
        if m.group(3):
            branch = re.split(_COLON, m.group(3))[0].strip()
    return ImportDeclaration.create(mode, m.group(4).strip(), branch=branch, project=project)


class _LineError(Exception):
    pass


def _parse_per_file(line: str) -> OwnerRuleSet | None:
    m = _PAT_PER_FILE.fullmatch(line)
    if not m or not _PAT_GLOBS.fullmatch(m.group(1).strip()):
        return None

    directive = m.group(2).strip()
    if not _PAT_PER_FILE_OWNERS.fullmatch(directive):
        if _PAT_PER_FILE_INCLUDE.fullmatch(directive):
            raise _LineError(f"'include' is not supported in per-file lines, use 'file:' instead: {line}")
        return None

    globs = tuple(split_globs(_remove_extra_spaces(m.group(1))))
    directive = _remove_extra_spaces(directive)
    if directive == SET_NOPARENT:
        return OwnerRuleSet(path_expressions=globs, ignore_global_and_parent_owners=True)

    declaration = parse_import(directive)
    if declaration is not None:
        return OwnerRuleSet(path_expressions=globs, imports=(declaration,))

    return OwnerRuleSet(path_expressions=globs, owners=tuple(re.split(_COMMA, directive)))


class FindOwnersParser:
    """Reads and writes the find-owners `OWNERS` syntax.

    The syntax has one owner list per file, so `format` merges all global rule
    sets into one. A per-file rule set is written as one line per part (owners,
    `set noparent`, each import) and is read back as that many rule sets.
    """

    name = "find-owners"

    def parse(self, key: OwnerConfigKey, text: str | None, revision: str | None = None) -> OwnerConfig:
        ignore_parent = False
        global_owners: list[str] = []
        per_file: list[OwnerRuleSet] = []
        imports: list[ImportDeclaration] = []
        errors: list[str] = []

        for line in (text or "").splitlines():
            try:
                if _PAT_NO_PARENT.fullmatch(line):
                    ignore_parent = True
                elif _PAT_COMMENT.fullmatch(line):
                    continue
                elif (m := _PAT_EMAIL.fullmatch(line)) is not None:
                    global_owners.append(m.group(1).strip())
                elif (rule_set := _parse_per_file(line)) is not None:
                    per_file.append(rule_set)
                elif (declaration := parse_import(line)) is not None:
                    imports.append(declaration)
                else:
                    errors.append(f"invalid line: {line}")
            except _LineError as e:
                errors.append(str(e))
            except ValueError as e:
                errors.append(f"invalid line: {line} ({e})")

        if errors:
            # the store replaces the key by the file path
            raise InvalidOwnerConfigError(key.format(), "\n".join(errors))

        rule_sets: list[OwnerRuleSet] = []
        if global_owners:
            rule_sets.append(OwnerRuleSet(owners=tuple(global_owners)))
        rule_sets.extend(per_file)
        return OwnerConfig(
            key=key,
            revision=revision,
            ignore_parent_owners=ignore_parent,
            rule_sets=tuple(rule_sets),
            imports=tuple(imports),
        )

    def format(self, config: OwnerConfig) -> str:
        out: list[str] = []
        if config.ignore_parent_owners:
            out.append(SET_NOPARENT)
        out.extend(format_import(d) for d in config.imports)
        out.extend(sorted({o for rs in config.global_rule_sets() for o in rs.owners}))
        for rs in config.per_file_rule_sets():
            globs = ",".join(sorted(set(rs.path_expressions)))
            if rs.ignore_global_and_parent_owners:
                out.append(f"per-file {globs}={SET_NOPARENT}")
            out.extend(f"per-file {globs}={format_import(d)}" for d in rs.imports)
            if rs.owners:
                out.append(f"per-file {globs}={','.join(sorted(set(rs.owners)))}")
        return "".join(line + "\n" for line in out)


def format_import(declaration: ImportDeclaration) -> str:
    keyword = "include " if declaration.mode is ImportMode.ALL else "file: "
    if declaration.branch and not declaration.project:
        raise ValueError(f"project is required if branch is specified: {declaration}")
    prefix = ""
    if declaration.project:
        prefix += declaration.project + ":"
    if declaration.branch:
        prefix += short_ref(declaration.branch) + ":"
    return keyword + prefix + declaration.file_path
