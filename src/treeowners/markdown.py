from __future__ import annotations

from typing import Sequence

from .impact import ImpactReport
from .lint import LintResult
from .model import OwnerResolverResult
from .scoring import ScoredOwner


def _status_bits(result: OwnerResolverResult) -> list[str]:
    bits: list[str] = []
    if result.has_unresolved_owners:
        bits.append("some owners could not be resolved")
    if result.has_unresolved_imports:
        bits.append(f"{len(result.unresolved_imports)} unresolved import(s)")
    if result.has_invalid_configs:
        bits.append(f"{len(result.invalid_configs)} invalid owner config(s)")
    return bits


def render_owners_markdown(result: OwnerResolverResult, *, title: str | None = None) -> str:
    lines: list[str] = [f"### {title or result.path}", ""]

    if result.owned_by_all_users:
        lines.append("_Owned by all users._")
    elif not result.owners:
        lines.append("_No owners._")
    else:
        for owner in sorted(result.owners, key=lambda o: (result.distances.get(o, 0), o.email)):
            lines.append(f"- {owner.display()} (distance {result.distances.get(owner, 0)})")
    lines.append("")

    for bit in _status_bits(result):
        lines.append(f"- ⚠️ {bit}")
    for imp in result.unresolved_imports:
        lines.append(f"  - {imp.format()}")
    for invalid in result.invalid_configs:
        lines.append(f"  - `{invalid.path}`: {invalid.message}")

    if result.messages:
        lines.append("")
        lines.append("<details>")
        lines.append("<summary>Trace</summary>")
        lines.append("")
        for m in result.messages:
            lines.append(f"- {m}")
        lines.append("")
        lines.append("</details>")

    lines.append("")
    return "\n".join(lines)


def render_suggestions_markdown(path: str, suggestions: Sequence[ScoredOwner]) -> str:
    lines: list[str] = [f"### Suggested owners for {path}", ""]
    if not suggestions:
        lines.append("_No owners to suggest._")
    for i, s in enumerate(suggestions, start=1):
        lines.append(f"{i}. {s.owner.display()} (score {s.score:.2f})")
    lines.append("")
    return "\n".join(lines)


def render_impact_markdown(
    report: ImpactReport,
    *,
    title: str = "Owners",
    include_files: bool = False,
    max_files_per_owner: int = 50,
    include_unowned: bool = True,
) -> str:
    lines: list[str] = []
    lines.append(f"## {title}")
    lines.append("")

    if not report.results:
        lines.append("_No changed files detected._")
        return "\n".join(lines)

    # Owners with the most files first
    impacted = sorted(report.owners_to_files.items(), key=lambda kv: (-len(kv[1]), kv[0]))

    lines.append(f"### Owners of changed files ({len(impacted)})")
    lines.append("")

    for email, files in impacted:
        count = len(files)
        lines.append(f"- **{email}** ({count} file{'s' if count != 1 else ''})")

        if include_files:
            shown = files[:max_files_per_owner]
            for f in shown:
                lines.append(f"  - `{f}`")
            if len(files) > len(shown):
                lines.append(f"  - _…and {len(files) - len(shown)} more_")

    lines.append("")

    if report.owned_by_all_users:
        lines.append(f"### Owned by all users ({len(report.owned_by_all_users)})")
        lines.append("")
        for f in report.owned_by_all_users[:max_files_per_owner]:
            lines.append(f"- `{f}`")
        lines.append("")

    if include_unowned and report.unowned_files:
        lines.append(f"### Files without owners ({len(report.unowned_files)})")
        lines.append("")
        for f in report.unowned_files[:max_files_per_owner]:
            lines.append(f"- `{f}`")
        if len(report.unowned_files) > max_files_per_owner:
            lines.append(f"- _…and {len(report.unowned_files) - max_files_per_owner} more_")
        lines.append("")

    if report.degraded_files:
        lines.append(f"### Files with incomplete owner information ({len(report.degraded_files)}) ⚠️")
        lines.append("")
        for f in report.degraded_files:
            lines.append(f"- `{f}`: " + "; ".join(_status_bits(report.results[f])))
        lines.append("")

    return "\n".join(lines)


def render_lint_markdown(result: LintResult, *, title: str = "Check") -> str:
    if not result.issues:
        return f"### {title}\n\n✅ No issues found in {result.checked_files} owner config file(s).\n"

    lines: list[str] = [f"### {title}", ""]
    for iss in result.issues:
        loc = f"{iss.file}: " if iss.file else ""
        hint = f" _(hint: {iss.hint})_" if iss.hint else ""
        icon = "❌" if iss.severity == "ERROR" else "⚠️"
        lines.append(f"- {icon} **{iss.code}**: {loc}{iss.message}{hint}")
    lines.append("")
    return "\n".join(lines)
