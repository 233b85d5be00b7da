"""Ticket Routing Engine: deterministic rule resolution for inbound tickets.

Maps a ticket's (mailbox, ticket_type, category) to an assignment group
using the admin-configured routing rules:

1. Only active rules are considered.
2. A rule matches when every match field it sets equals the ticket's
   attribute exactly (case-sensitive). Unset fields are wildcards.
3. The lowest priority value wins.
4. Equal priority: the rule with more set fields wins, then the smaller
   rule_key.

This module does no I/O. Callers load one snapshot of the rules per
intake event and pass it in; rules may be ORM rows or RoutingRuleSnapshot
objects, anything exposing the rule attributes.
"""
import uuid
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

MATCH_FIELDS: tuple[tuple[str, str], ...] = (
    ("match_mailbox", "mailbox"),
    ("match_ticket_type", "ticket_type"),
    ("match_category", "category"),
)


# ─── Inputs ───

@dataclass(frozen=True)
class TicketAttributes:
    mailbox: str | None = None
    ticket_type: str | None = None
    category: str | None = None


@dataclass(frozen=True)
class RoutingRuleSnapshot:
    id: uuid.UUID
    rule_key: str
    priority: int
    is_active: bool = True
    match_mailbox: str | None = None
    match_ticket_type: str | None = None
    match_category: str | None = None
    assignment_group_id: uuid.UUID | None = None

    @classmethod
    def from_row(cls, row: Any) -> "RoutingRuleSnapshot":
        """Detach a rule from its ORM session so it can be passed around freely."""
        return cls(
            id=row.id,
            rule_key=row.rule_key,
            priority=row.priority,
            is_active=bool(row.is_active),
            match_mailbox=row.match_mailbox,
            match_ticket_type=row.match_ticket_type,
            match_category=row.match_category,
            assignment_group_id=row.assignment_group_id,
        )


# ─── Matching ───

def _is_set(value: str | None) -> bool:
    return value is not None and value != ""


def rule_specificity(rule: Any) -> int:
    """Number of non-wildcard match fields on the rule (0-3)."""
    return sum(1 for rule_field, _ in MATCH_FIELDS if _is_set(getattr(rule, rule_field, None)))


def rule_matches(rule: Any, attrs: TicketAttributes) -> bool:
    """True when every set match field equals the ticket attribute."""
    for rule_field, attr_field in MATCH_FIELDS:
        expected = getattr(rule, rule_field, None)
        if not _is_set(expected):
            continue
        actual = getattr(attrs, attr_field)
        if not _is_set(actual) or actual != expected:
            return False
    return True


def _sort_key(rule: Any) -> tuple[int, int, str]:
    return (rule.priority, -rule_specificity(rule), rule.rule_key or "")


# ─── Resolution ───

def select_rule(attrs: TicketAttributes, rules: Iterable[Any] | None) -> Any | None:
    """Return the winning rule for the ticket, or None when nothing matches.

    An empty or missing rule list is "no rules to match", not an error.
    """
    candidates = [
        r for r in (rules or [])
        if getattr(r, "is_active", False) and rule_matches(r, attrs)
    ]
    if not candidates:
        return None
    return min(candidates, key=_sort_key)


def resolve(attrs: TicketAttributes, rules: Iterable[Any] | None) -> uuid.UUID | None:
    """Return the assignment_group_id of the winning rule, or None.

    None is returned both for "no match" and for a winning rule that is
    intentionally unassigned; use select_rule() to tell them apart.
    """
    rule = select_rule(attrs, rules)
    return rule.assignment_group_id if rule is not None else None


def explain(attrs: TicketAttributes, rule: Any | None) -> str:
    """Human-readable summary of a routing outcome, for previews and audit notes."""
    described = ", ".join(
        f"{attr}='{getattr(attrs, attr)}'" for _, attr in MATCH_FIELDS if _is_set(getattr(attrs, attr))
    ) or "no routing attributes"
    if rule is None:
        return f"No active routing rule matched {described}."
    if rule.assignment_group_id is None:
        return (
            f"Matched rule '{rule.rule_key}' (priority {rule.priority}) for {described}; "
            "the rule leaves the ticket unassigned."
        )
    return f"Matched rule '{rule.rule_key}' (priority {rule.priority}) for {described}."
