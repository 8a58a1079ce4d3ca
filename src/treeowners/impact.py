from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from .model import OwnerResolverResult
from .paths import absolute_path
from .resolver import OwnerResolver


@dataclass(frozen=True)
class ImpactReport:
    owners_to_files: dict[str, list[str]] = field(default_factory=dict)
    # no owners defined, or none of them resolvable
    unowned_files: list[str] = field(default_factory=list)
    owned_by_all_users: list[str] = field(default_factory=list)
    # files whose owner resolution met unresolved imports or invalid configs
    degraded_files: list[str] = field(default_factory=list)
    results: dict[str, OwnerResolverResult] = field(default_factory=dict)

    def impacted_owners(self) -> list[str]:
        return sorted(self.owners_to_files.keys())

    def file_count_for(self, owner: str) -> int:
        return len(self.owners_to_files.get(owner, []))

    def total_files(self) -> int:
        return len(self.results)


def compute_impact(resolver: OwnerResolver, project: str, branch: str, changed_files: Iterable[str]) -> ImpactReport:
    owners_to_files: dict[str, list[str]] = {}
    unowned: list[str] = []
    owned_by_all: list[str] = []
    degraded: list[str] = []
    results: dict[str, OwnerResolverResult] = {}

    for path in changed_files:
        path = absolute_path(path)
        if path in results:
            continue
        res = resolver.resolve(project, branch, path)
        results[path] = res
        if res.has_unresolved_imports or res.has_invalid_configs:
            degraded.append(path)
        if res.owned_by_all_users:
            owned_by_all.append(path)
            continue
        if not res.owners:
            unowned.append(path)
            continue
        for owner in res.owners:
            owners_to_files.setdefault(owner.email, []).append(path)

    # Sort for stable output
    for owner, files in owners_to_files.items():
        owners_to_files[owner] = sorted(files)

    return ImpactReport(
        owners_to_files=owners_to_files,
        unowned_files=sorted(unowned),
        owned_by_all_users=sorted(owned_by_all),
        degraded_files=sorted(degraded),
        results=results,
    )
