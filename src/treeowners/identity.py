"""Mapping of owner references (emails) to accounts.

Accounts are read from a YAML file::

    accounts:
      - id: 1000
        name: Alice
        email: alice@example.com
        secondary_emails: [alice@corp.example.com]
      - id: 1001
        email: bob@example.com
        active: false
"""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Protocol

import yaml

from .errors import ParseError
from .model import ALL_USERS_WILDCARD, Identity


@dataclass(frozen=True)
class Account:
    account_id: int
    email: str
    name: str | None = None
    secondary_emails: tuple[str, ...] = ()
    active: bool = True
    visible: bool = True

    @staticmethod
    def from_obj(obj: Any, *, source: str) -> "Account":
        if not isinstance(obj, Mapping):
            raise ParseError(f"{source}: accounts entries must be mappings, got {type(obj).__name__}")
        account_id = obj.get("id")
        email = obj.get("email")
        if not isinstance(account_id, int) or isinstance(account_id, bool):
            raise ParseError(f"{source}: account 'id' must be an integer")
        if not isinstance(email, str) or "@" not in email:
            raise ParseError(f"{source}: account {account_id}: 'email' must be an email address")
        secondary = obj.get("secondary_emails") or []
        if not isinstance(secondary, list) or not all(isinstance(x, str) for x in secondary):
            raise ParseError(f"{source}: account {account_id}: 'secondary_emails' must be a list of strings")
        return Account(
            account_id=account_id,
            email=email.strip(),
            name=obj.get("name"),
            secondary_emails=tuple(x.strip() for x in secondary),
            active=bool(obj.get("active", True)),
            visible=bool(obj.get("visible", True)),
        )

    def emails(self) -> tuple[str, ...]:
        return (self.email,) + self.secondary_emails

    def identity(self) -> Identity:
        return Identity(account_id=self.account_id, email=self.email, name=self.name)


@dataclass(frozen=True)
class IdentityLookup:
    email: str
    identity: Identity | None
    message: str

    @property
    def resolved(self) -> bool:
        return self.identity is not None


class IdentityResolver(Protocol):
    def lookup(self, email: str) -> IdentityLookup:
        ...


@dataclass
class AccountDirectory:
    """Resolves emails against a fixed set of accounts.

    An email resolves only if exactly one active, visible account has it and
    its domain is allowed. Everything else is reported as unresolved.
    """

    accounts: list[Account] = field(default_factory=list)
    allowed_email_domains: tuple[str, ...] = ()
    enforce_visibility: bool = True

    def __post_init__(self) -> None:
        self._by_email: dict[str, list[Account]] = {}
        for account in self.accounts:
            for email in account.emails():
                self._by_email.setdefault(email.lower(), []).append(account)

    def is_email_domain_allowed(self, email: str) -> bool:
        if not self.allowed_email_domains:
            return True
        domain = email.rpartition("@")[2].lower()
        return domain in self.allowed_email_domains

    def lookup(self, email: str) -> IdentityLookup:
        if email == ALL_USERS_WILDCARD:
            return IdentityLookup(email, None, "the all-users wildcard is not an account")
        if "@" not in email:
            return IdentityLookup(email, None, f"cannot resolve owner {email}: not an email")
        if not self.is_email_domain_allowed(email):
            return IdentityLookup(email, None, f"domain of email {email} is not allowed")

        candidates = self._by_email.get(email.lower(), [])
        if not candidates:
            return IdentityLookup(email, None, f"cannot resolve owner email {email}: no account with this email exists")
        if len(candidates) > 1:
            ids = ", ".join(str(a.account_id) for a in candidates)
            return IdentityLookup(email, None, f"cannot resolve owner email {email}: email is ambiguous ({ids})")

        account = candidates[0]
        if not account.active:
            return IdentityLookup(email, None, f"cannot resolve owner email {email}: account {account.account_id} is inactive")
        if self.enforce_visibility and not account.visible:
            return IdentityLookup(
                email, None, f"cannot resolve owner email {email}: account {account.account_id} is not visible"
            )
        return IdentityLookup(email, account.identity(), f"resolved {email} to account {account.account_id}")


def parse_accounts_obj(data: Any, *, source: str) -> list[Account]:
    if data is None:
        return []
    # Accept either {accounts: [...]} or a bare list.
    if isinstance(data, Mapping):
        data = data.get("accounts") or []
    if not isinstance(data, list):
        raise ParseError(f"{source}: accounts must be a list")
    accounts = [Account.from_obj(o, source=source) for o in data]
    seen: set[int] = set()
    for a in accounts:
        if a.account_id in seen:
            raise ParseError(f"{source}: duplicate account id {a.account_id}")
        seen.add(a.account_id)
    return accounts


def load_accounts(path: Path) -> list[Account]:
    if not path.exists():
        return []
    try:
        obj = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as e:
        raise ParseError(f"Failed to parse accounts file {path}: {e}") from e
    return parse_accounts_obj(obj, source=str(path))


class EmailDirectory:
    """Treats every email as an account of its own; used when no accounts are configured."""

    def __init__(self, allowed_email_domains: tuple[str, ...] = ()):
        self.allowed_email_domains = allowed_email_domains
        self._ids: dict[str, int] = {}

    def lookup(self, email: str) -> IdentityLookup:
        if email == ALL_USERS_WILDCARD or "@" not in email:
            return IdentityLookup(email, None, f"cannot resolve owner {email}: not an email")
        domain = email.rpartition("@")[2].lower()
        if self.allowed_email_domains and domain not in self.allowed_email_domains:
            return IdentityLookup(email, None, f"domain of email {email} is not allowed")
        account_id = self._ids.setdefault(email.lower(), len(self._ids) + 1)
        return IdentityLookup(email, Identity(account_id=account_id, email=email), f"resolved {email}")
