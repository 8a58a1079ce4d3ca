"""Owner config files in YAML.

Example::

    ignore_parent_owners: false
    imports:
      - file: /common/OWNERS.yaml
        mode: ALL
        project: other-project
        branch: stable
    rule_sets:
      - owners: [alice@example.com]
      - path_expressions: ["*.md"]
        owners: [bob@example.com]
        ignore_global_and_parent_owners: true
"""
from __future__ import annotations

from typing import Any, Mapping

import yaml

from .errors import InvalidOwnerConfigError
from .model import ImportDeclaration, ImportMode, OwnerConfig, OwnerConfigKey, OwnerRuleSet
from .paths import short_ref

_CONFIG_KEYS = {"ignore_parent_owners", "imports", "rule_sets"}
_RULE_SET_KEYS = {"path_expressions", "owners", "ignore_global_and_parent_owners", "imports"}
_IMPORT_KEYS = {"file", "mode", "branch", "project"}


class _Invalid(Exception):
    pass


def _check_keys(obj: Mapping, allowed: set[str], *, where: str) -> None:
    unknown = sorted(str(k) for k in obj if k not in allowed)
    if unknown:
        raise _Invalid(f"{where}: unknown keys: {', '.join(unknown)}")


def _str_list(value: Any, *, where: str) -> tuple[str, ...]:
    if value is None:
        return ()
    if not isinstance(value, list) or not all(isinstance(x, str) and x.strip() for x in value):
        raise _Invalid(f"{where} must be a list of non-empty strings")
    return tuple(x.strip() for x in value)


def _bool(value: Any, *, where: str) -> bool:
    if value is None:
        return False
    if not isinstance(value, bool):
        raise _Invalid(f"{where} must be true or false")
    return value


def _import_from_obj(obj: Any, *, where: str) -> ImportDeclaration:
    if isinstance(obj, str):
        return ImportDeclaration.create(ImportMode.ALL, obj)
    if not isinstance(obj, Mapping):
        raise _Invalid(f"{where}: imports must be strings or mappings, got {type(obj).__name__}")
    _check_keys(obj, _IMPORT_KEYS, where=where)
    file_path = obj.get("file")
    if not isinstance(file_path, str) or not file_path.strip():
        raise _Invalid(f"{where}: 'file' is required")
    mode_name = obj.get("mode", ImportMode.ALL.value)
    try:
        mode = ImportMode(str(mode_name).upper())
    except ValueError:
        raise _Invalid(f"{where}: unknown import mode '{mode_name}'") from None
    branch = obj.get("branch")
    project = obj.get("project")
    try:
        return ImportDeclaration.create(
            mode,
            file_path.strip(),
            branch=str(branch) if branch is not None else None,
            project=str(project) if project is not None else None,
        )
    except ValueError as e:
        raise _Invalid(f"{where}: {e}") from e


def _imports_from_obj(value: Any, *, where: str) -> tuple[ImportDeclaration, ...]:
    if value is None:
        return ()
    if not isinstance(value, list):
        raise _Invalid(f"{where}: imports must be a list")
    return tuple(_import_from_obj(o, where=f"{where}.imports[{i}]") for i, o in enumerate(value))


def _rule_set_from_obj(obj: Any, *, where: str) -> OwnerRuleSet:
    if not isinstance(obj, Mapping):
        raise _Invalid(f"{where} must be a mapping")
    _check_keys(obj, _RULE_SET_KEYS, where=where)
    try:
        return OwnerRuleSet(
            path_expressions=_str_list(obj.get("path_expressions"), where=f"{where}.path_expressions"),
            owners=_str_list(obj.get("owners"), where=f"{where}.owners"),
            ignore_global_and_parent_owners=_bool(
                obj.get("ignore_global_and_parent_owners"), where=f"{where}.ignore_global_and_parent_owners"
            ),
            imports=_imports_from_obj(obj.get("imports"), where=where),
        )
    except ValueError as e:
        raise _Invalid(f"{where}: {e}") from e


def parse_config_obj(key: OwnerConfigKey, data: Any, revision: str | None = None) -> OwnerConfig:
    if data is None:
        return OwnerConfig(key=key, revision=revision)
    if not isinstance(data, Mapping):
        raise InvalidOwnerConfigError(key.format(), "expected a mapping")
    try:
        _check_keys(data, _CONFIG_KEYS, where="config")
        raw_rule_sets = data.get("rule_sets") or []
        if not isinstance(raw_rule_sets, list):
            raise _Invalid("rule_sets must be a list")
        return OwnerConfig(
            key=key,
            revision=revision,
            ignore_parent_owners=_bool(data.get("ignore_parent_owners"), where="ignore_parent_owners"),
            rule_sets=tuple(_rule_set_from_obj(o, where=f"rule_sets[{i}]") for i, o in enumerate(raw_rule_sets)),
            imports=_imports_from_obj(data.get("imports"), where="config"),
        )
    except _Invalid as e:
        raise InvalidOwnerConfigError(key.format(), str(e)) from e


def _import_to_obj(declaration: ImportDeclaration) -> dict[str, Any]:
    obj: dict[str, Any] = {"file": declaration.file_path, "mode": declaration.mode.value}
    if declaration.project:
        obj["project"] = declaration.project
    if declaration.branch:
        obj["branch"] = short_ref(declaration.branch)
    return obj


def config_to_obj(config: OwnerConfig) -> dict[str, Any]:
    obj: dict[str, Any] = {}
    if config.ignore_parent_owners:
        obj["ignore_parent_owners"] = True
    if config.imports:
        obj["imports"] = [_import_to_obj(d) for d in config.imports]
    rule_sets = []
    for rs in config.rule_sets:
        item: dict[str, Any] = {}
        if rs.path_expressions:
            item["path_expressions"] = list(rs.path_expressions)
        if rs.owners:
            item["owners"] = list(rs.owners)
        if rs.ignore_global_and_parent_owners:
            item["ignore_global_and_parent_owners"] = True
        if rs.imports:
            item["imports"] = [_import_to_obj(d) for d in rs.imports]
        rule_sets.append(item)
    if rule_sets:
        obj["rule_sets"] = rule_sets
    return obj


class YamlParser:
    name = "yaml"

    def parse(self, key: OwnerConfigKey, text: str | None, revision: str | None = None) -> OwnerConfig:
        try:
            data = yaml.safe_load(text or "")
        except yaml.YAMLError as e:
            raise InvalidOwnerConfigError(key.format(), f"invalid YAML: {e}") from e
        return parse_config_obj(key, data, revision)

    def format(self, config: OwnerConfig) -> str:
        if config.is_empty:
            return ""
        return yaml.safe_dump(config_to_obj(config), sort_keys=False, default_flow_style=False)
