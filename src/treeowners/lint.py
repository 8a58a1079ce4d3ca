from __future__ import annotations

from dataclasses import dataclass

from .errors import InvalidOwnerConfigError
from .identity import IdentityResolver
from .imports import ImportResolver
from .model import ALL_USERS_WILDCARD, ImportDeclaration, OwnerConfig
from .scanner import OwnerConfigScanner
from .store import OwnerConfigStore


@dataclass(frozen=True)
class Issue:
    severity: str  # "ERROR" | "WARN"
    code: str
    message: str
    file: str | None = None
    hint: str | None = None


@dataclass(frozen=True)
class LintResult:
    issues: list[Issue]
    checked_files: int = 0

    @property
    def has_errors(self) -> bool:
        return any(i.severity == "ERROR" for i in self.issues)

    @property
    def has_warnings(self) -> bool:
        return any(i.severity == "WARN" for i in self.issues)


def _declarations(config: OwnerConfig) -> list[ImportDeclaration]:
    out = list(config.imports)
    for rs in config.rule_sets:
        out.extend(rs.imports)
    return out


def lint_configs(
    store: OwnerConfigStore,
    import_resolver: ImportResolver,
    identities: IdentityResolver,
    project: str,
    branch: str,
    *,
    strict: bool = False,
) -> LintResult:
    """Checks every owner config file in ``branch``.

    - Unparsable files and unresolvable imports are errors.
    - Owner emails that don't resolve to an account are warnings
      (errors in strict mode).
    """
    issues: list[Issue] = []
    configs: list[OwnerConfig] = []

    def on_invalid_config(path: str, error: InvalidOwnerConfigError) -> None:
        issues.append(
            Issue(
                severity="ERROR",
                code="INVALID_CONFIG",
                message=error.message,
                file=path,
                hint="Fix the syntax; owners defined in this file are ignored until then.",
            )
        )

    def visitor(config: OwnerConfig) -> bool:
        configs.append(config)
        return True

    OwnerConfigScanner(store).scan(project, branch, visitor, on_invalid_config)

    with store.session() as session:
        for config in configs:
            path = store.file_path(config.key)
            for declaration in _declarations(config):
                if not store.naming.matches(declaration.file_name):
                    issues.append(
                        Issue(
                            severity="ERROR",
                            code="UNSUPPORTED_IMPORT",
                            message=f"Import of '{declaration.format()}': file name is not an owner config file name.",
                            file=path,
                        )
                    )
                    continue
                outcome = import_resolver.resolve(config, declaration, session=session)
                if not outcome.resolved:
                    issues.append(
                        Issue(
                            severity="ERROR",
                            code="UNRESOLVED_IMPORT",
                            message=outcome.format(),
                            file=path,
                        )
                    )

            seen: set[str] = set()
            for rs in config.rule_sets:
                for email in rs.owners:
                    if email == ALL_USERS_WILDCARD or email in seen:
                        continue
                    seen.add(email)
                    lookup = identities.lookup(email)
                    if lookup.resolved:
                        continue
                    issues.append(
                        Issue(
                            severity="ERROR" if strict else "WARN",
                            code="UNRESOLVED_OWNER",
                            message=lookup.message,
                            file=path,
                            hint="Unresolvable owners are ignored when owners are computed.",
                        )
                    )

    return LintResult(issues=issues, checked_files=len(configs) + sum(1 for i in issues if i.code == "INVALID_CONFIG"))
