from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from .config import DEFAULT_SETTINGS_FILE, Settings, load_settings
from .errors import ConfigError, GitError, InternalError, ParseError, StorageError, UsageError
from .gitutils import find_repo_root, git_current_branch, git_diff_name_only
from .identity import AccountDirectory, EmailDirectory, IdentityResolver, load_accounts
from .impact import compute_impact
from .imports import ImportResolver
from .lint import lint_configs
from .markdown import render_impact_markdown, render_lint_markdown, render_owners_markdown, render_suggestions_markdown
from .model import OwnerResolverResult
from .paths import absolute_path, full_ref, normalize_paths, normalize_repo_path
from .resolver import OwnerResolver
from .scanner import OwnerConfigScanner
from .storage import GitTreeStorage
from .store import OwnerConfigStore
from .version import __version__


def _repo_root(args_repo_root: str | None) -> Path:
    if args_repo_root:
        return Path(args_repo_root).resolve()
    try:
        return find_repo_root()
    except GitError:
        return Path.cwd()


def _settings(repo_root: Path, settings_file: str | None) -> Settings:
    return load_settings(repo_root / (settings_file or DEFAULT_SETTINGS_FILE))


def _identities(repo_root: Path, accounts_file: str | None, settings: Settings) -> IdentityResolver:
    if not accounts_file:
        return EmailDirectory(settings.allowed_email_domains)
    path = repo_root / accounts_file
    if not path.exists():
        raise UsageError(f"accounts file {path} not found")
    return AccountDirectory(
        load_accounts(path),
        allowed_email_domains=settings.allowed_email_domains,
        enforce_visibility=settings.enforce_visibility,
    )


class _Env:
    """Everything a command needs, built from the global flags."""

    def __init__(self, args: argparse.Namespace):
        self.repo_root = _repo_root(args.repo_root)
        self.settings = _settings(self.repo_root, args.settings)
        self.project = args.project or self.repo_root.name
        branch = getattr(args, "branch", None)
        self.branch = full_ref(branch) if branch else git_current_branch(self.repo_root)
        self.storage = GitTreeStorage({self.project: self.repo_root})
        self.store = OwnerConfigStore.from_settings(self.storage, self.settings)
        self.identities = _identities(self.repo_root, args.accounts, self.settings)

    def resolver(self) -> OwnerResolver:
        return OwnerResolver.from_settings(self.storage, self.settings, self.identities)

    def path(self, raw: str) -> str:
        return absolute_path(normalize_repo_path(raw, repo_root=self.repo_root))


def _result_payload(result: OwnerResolverResult) -> dict:
    return {
        "path": result.path,
        "owners": [
            {
                "account_id": o.account_id,
                "email": o.email,
                "name": o.name,
                "distance": result.distances.get(o),
            }
            for o in result.owners
        ],
        "owned_by_all_users": result.owned_by_all_users,
        "has_unresolved_owners": result.has_unresolved_owners,
        "unresolved_imports": [i.format() for i in result.unresolved_imports],
        "invalid_configs": [{"path": c.path, "message": c.message} for c in result.invalid_configs],
        "messages": list(result.messages),
    }


def cmd_who_owns(args: argparse.Namespace) -> int:
    env = _Env(args)
    path = env.path(args.path)
    result = env.resolver().resolve(env.project, env.branch, path, trace=args.trace)

    if args.format == "json":
        payload = _result_payload(result)
        payload["version"] = __version__
        print(json.dumps(payload, indent=2))
        return 0
    if args.format == "markdown":
        print(render_owners_markdown(result))
        return 0

    if result.owned_by_all_users:
        print(f"{path}: (all users)")
    elif not result.owners:
        print(f"{path}: (no owners)")
    else:
        print(f"{path}:")
        for owner in result.owners:
            print(f"  {owner.display()}")
    if result.has_unresolved_owners:
        print("  warning: some owners could not be resolved")
    for imp in result.unresolved_imports:
        print(f"  warning: {imp.format()}")
    for invalid in result.invalid_configs:
        print(f"  warning: invalid owner config {invalid.path}: {invalid.message}")

    if args.trace:
        print("")
        for m in result.messages:
            print(f"- {m}")
    return 0


def cmd_suggest(args: argparse.Namespace) -> int:
    if args.limit is not None and args.limit < 1:
        raise UsageError("--limit must be at least 1")
    env = _Env(args)
    path = env.path(args.path)
    suggestions = env.resolver().suggest(env.project, env.branch, path, reviewers=args.reviewer, limit=args.limit)

    if args.format == "json":
        payload = {
            "path": path,
            "suggestions": [{"email": s.owner.email, "name": s.owner.name, "score": s.score} for s in suggestions],
            "version": __version__,
        }
        print(json.dumps(payload, indent=2))
    else:
        print(render_suggestions_markdown(path, suggestions))
    return 0


def cmd_impacted(args: argparse.Namespace) -> int:
    env = _Env(args)

    if args.stdin:
        changed = [line.strip() for line in sys.stdin.read().splitlines() if line.strip()]
    else:
        diff = args.diff or "HEAD~1...HEAD"
        changed = git_diff_name_only(env.repo_root, diff)

    changed = normalize_paths(changed, repo_root=env.repo_root)
    report = compute_impact(env.resolver(), env.project, env.branch, changed)

    if args.format == "json":
        payload = {
            "diff": args.diff,
            "impacted_owners": report.impacted_owners(),
            "owners": {k: {"count": len(v), "files": v} for k, v in sorted(report.owners_to_files.items())},
            "unowned_files": report.unowned_files,
            "owned_by_all_users": report.owned_by_all_users,
            "degraded_files": report.degraded_files,
            "total_files": report.total_files(),
            "version": __version__,
        }
        print(json.dumps(payload, indent=2))
    else:
        md = render_impact_markdown(
            report,
            include_files=args.show_files,
            max_files_per_owner=args.max_files,
            include_unowned=True,
            title="Impacted owners",
        )
        print(md)

    if args.fail_on_unowned and report.unowned_files:
        return 3
    return 0


def cmd_configs(args: argparse.Namespace) -> int:
    env = _Env(args)
    paths = OwnerConfigScanner(env.store, default_config_branch=env.settings.default_config_branch).config_file_paths(
        env.project, env.branch, include_default_config=args.include_default
    )
    if args.format == "json":
        print(json.dumps({"branch": env.branch, "configs": paths, "version": __version__}, indent=2))
    else:
        for p in paths:
            print(p)
    return 0


def cmd_check(args: argparse.Namespace) -> int:
    env = _Env(args)
    res = lint_configs(
        env.store,
        ImportResolver(env.store, env.settings.matcher(), max_import_depth=env.settings.max_import_depth),
        env.identities,
        env.project,
        env.branch,
        strict=args.strict,
    )

    if args.format == "json":
        payload = {
            "checked_files": res.checked_files,
            "issues": [
                {
                    "severity": i.severity,
                    "code": i.code,
                    "message": i.message,
                    "file": i.file,
                    "hint": i.hint,
                }
                for i in res.issues
            ],
            "version": __version__,
        }
        print(json.dumps(payload, indent=2))
    else:
        print(render_lint_markdown(res, title="Owner configs"))

    return 2 if res.has_errors else 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="towners", description="TreeOwners - folder based code ownership")
    p.add_argument("--repo-root", default=None, help="Repository root (default: auto-detect with git)")
    p.add_argument("--settings", default=None, help=f"Settings file relative to repo root (default: {DEFAULT_SETTINGS_FILE})")
    p.add_argument("--accounts", default=None, help="Accounts YAML file relative to repo root (default: every email is an account)")
    p.add_argument("--project", default=None, help="Project name used in imports (default: name of the repo root)")
    p.add_argument("-v", "--verbose", action="store_true", help="Log debug output to stderr")
    p.add_argument("--version", action="version", version=f"treeowners {__version__}")

    sub = p.add_subparsers(dest="cmd", required=True)

    def branch_arg(sp: argparse.ArgumentParser) -> None:
        sp.add_argument("--branch", default=None, help="Branch to read owner configs from (default: checked out branch)")

    w = sub.add_parser("who-owns", aliases=["who", "owners"], help="Resolve the owners of a path")
    w.add_argument("path", help="Path to a file (relative or absolute)")
    branch_arg(w)
    w.add_argument("--format", choices=["text", "json", "markdown"], default="text")
    w.add_argument("--trace", action="store_true", help="Show how the owners were found")
    w.set_defaults(func=cmd_who_owns)

    s = sub.add_parser("suggest", help="Rank the owners of a path")
    s.add_argument("path", help="Path to a file (relative or absolute)")
    branch_arg(s)
    s.add_argument("--reviewer", action="append", default=[], help="Email of a current reviewer (repeatable)")
    s.add_argument("--limit", type=int, default=None, help="Max number of suggestions")
    s.add_argument("--format", choices=["text", "json"], default="text")
    s.set_defaults(func=cmd_suggest)

    im = sub.add_parser("impacted", aliases=["impact"], help="Owners of the files of a diff or file list")
    branch_arg(im)
    im.add_argument("--diff", default=None, help="Git rev range, e.g. origin/main...HEAD")
    im.add_argument("--stdin", action="store_true", help="Read changed files (one per line) from stdin")
    im.add_argument("--format", choices=["text", "json"], default="text")
    im.add_argument("--show-files", action="store_true", help="List changed files per owner")
    im.add_argument("--max-files", type=int, default=50, help="Max files to show per owner in text output")
    im.add_argument("--fail-on-unowned", action="store_true", help="Exit 3 if any file has no owners")
    im.set_defaults(func=cmd_impacted)

    c = sub.add_parser("configs", help="List the owner config files of a branch")
    branch_arg(c)
    c.add_argument("--include-default", action="store_true", help="Include the default config")
    c.add_argument("--format", choices=["text", "json"], default="text")
    c.set_defaults(func=cmd_configs)

    ch = sub.add_parser("check", help="Validate all owner config files of a branch")
    branch_arg(ch)
    ch.add_argument("--strict", action="store_true", help="Treat unresolvable owners as errors")
    ch.add_argument("--format", choices=["text", "json"], default="text")
    ch.set_defaults(func=cmd_check)

    return p


def main(argv: list[str] | None = None) -> None:
    argv = argv if argv is not None else sys.argv[1:]
    parser = build_parser()

    try:
        args = parser.parse_args(argv)
        logging.basicConfig(
            level=logging.DEBUG if args.verbose else logging.WARNING,
            format="%(levelname)s %(name)s: %(message)s",
        )
        rc = args.func(args)
    except UsageError as e:
        print(f"error: {e}", file=sys.stderr)
        rc = 2
    except ConfigError as e:
        print(f"config error: {e}", file=sys.stderr)
        rc = 2
    except ParseError as e:
        print(f"parse error: {e}", file=sys.stderr)
        rc = 2
    except GitError as e:
        print(f"git error: {e}", file=sys.stderr)
        rc = 2
    except StorageError as e:
        print(f"storage error: {e}", file=sys.stderr)
        rc = 2
    except InternalError as e:
        print(f"internal error: {e.user_message}", file=sys.stderr)
        rc = 1
    except KeyboardInterrupt:
        rc = 130

    raise SystemExit(rc)
