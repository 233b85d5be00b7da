"""Unit tests for the ticket routing engine.

Pure functions only: rules are RoutingRuleSnapshot objects, no DB.
"""
import uuid

import pytest

from app.rules.routing_engine import (
    RoutingRuleSnapshot,
    TicketAttributes,
    explain,
    resolve,
    rule_matches,
    rule_specificity,
    select_rule,
)


# ─── Helpers ──────────────────────────────────────────────────────────────────

GROUP_A = uuid.UUID("00000000-0000-0000-0000-00000000000a")
GROUP_B = uuid.UUID("00000000-0000-0000-0000-00000000000b")
GROUP_C = uuid.UUID("00000000-0000-0000-0000-00000000000c")


def _rule(
    rule_key: str = "rule",
    priority: int = 100,
    group: uuid.UUID | None = GROUP_A,
    is_active: bool = True,
    mailbox: str | None = None,
    ticket_type: str | None = None,
    category: str | None = None,
) -> RoutingRuleSnapshot:
    return RoutingRuleSnapshot(
        id=uuid.uuid4(),
        rule_key=rule_key,
        priority=priority,
        is_active=is_active,
        match_mailbox=mailbox,
        match_ticket_type=ticket_type,
        match_category=category,
        assignment_group_id=group,
    )


TICKETS = [
    TicketAttributes(),
    TicketAttributes(mailbox="support@x"),
    TicketAttributes(mailbox="support@x", ticket_type="incident", category="network"),
    TicketAttributes(ticket_type="request"),
    TicketAttributes(category=""),
]


# ─── Catch-all / empty ────────────────────────────────────────────────────────

@pytest.mark.parametrize("ticket", TICKETS)
def test_catch_all_rule_matches_every_ticket(ticket):
    """A rule with all three match fields unset routes any ticket."""
    catch_all = _rule("catch_all", group=GROUP_C)
    assert resolve(ticket, [catch_all]) == GROUP_C


@pytest.mark.parametrize("ticket", TICKETS)
def test_no_rules_resolves_to_none(ticket):
    assert resolve(ticket, []) is None
    assert resolve(ticket, None) is None


def test_no_matching_rule_resolves_to_none():
    rules = [
        _rule("a", mailbox="support@x"),
        _rule("b", ticket_type="incident", category="hardware"),
    ]
    ticket = TicketAttributes(mailbox="other@x", ticket_type="incident", category="network")
    assert resolve(ticket, rules) is None


# ─── Matching ─────────────────────────────────────────────────────────────────

def test_set_field_requires_ticket_attribute_present():
    """A set rule field never matches an absent ticket attribute."""
    rule = _rule(ticket_type="incident")
    assert rule_matches(rule, TicketAttributes(ticket_type="incident"))
    assert not rule_matches(rule, TicketAttributes())
    assert not rule_matches(rule, TicketAttributes(ticket_type=""))


def test_matching_is_case_sensitive():
    rule = _rule(mailbox="Support@x")
    assert not rule_matches(rule, TicketAttributes(mailbox="support@x"))
    assert rule_matches(rule, TicketAttributes(mailbox="Support@x"))


def test_empty_string_rule_field_is_wildcard():
    rule = _rule(mailbox="", ticket_type="incident")
    assert rule_specificity(rule) == 1
    assert rule_matches(rule, TicketAttributes(mailbox="anything@x", ticket_type="incident"))


def test_all_set_fields_must_match():
    rule = _rule(mailbox="support@x", ticket_type="incident", category="network")
    assert rule_matches(rule, TicketAttributes("support@x", "incident", "network"))
    assert not rule_matches(rule, TicketAttributes("support@x", "incident", "hardware"))


def test_inactive_rules_never_match():
    """An inactive rule is skipped even when every field aligns."""
    inactive = _rule("exact", priority=1, group=GROUP_A, is_active=False,
                     mailbox="support@x", ticket_type="incident")
    fallback = _rule("fallback", priority=500, group=GROUP_B)
    ticket = TicketAttributes(mailbox="support@x", ticket_type="incident")

    assert resolve(ticket, [inactive]) is None
    assert resolve(ticket, [inactive, fallback]) == GROUP_B


# ─── Ordering ─────────────────────────────────────────────────────────────────

def test_lower_priority_value_wins_regardless_of_order():
    p10 = _rule("p10", priority=10, group=GROUP_A)
    p20 = _rule("p20", priority=20, group=GROUP_B)
    ticket = TicketAttributes(mailbox="support@x")

    assert resolve(ticket, [p10, p20]) == GROUP_A
    assert resolve(ticket, [p20, p10]) == GROUP_A


def test_negative_priority_is_just_a_sort_key():
    neg = _rule("neg", priority=-5, group=GROUP_B)
    zero = _rule("zero", priority=0, group=GROUP_A)
    assert resolve(TicketAttributes(), [zero, neg]) == GROUP_B


def test_equal_priority_more_specific_rule_wins():
    broad = _rule("a_broad", priority=50, group=GROUP_A, ticket_type="incident")
    narrow = _rule("z_narrow", priority=50, group=GROUP_B, ticket_type="incident", category="network")
    ticket = TicketAttributes(ticket_type="incident", category="network")

    assert resolve(ticket, [broad, narrow]) == GROUP_B
    assert resolve(ticket, [narrow, broad]) == GROUP_B


def test_equal_priority_and_specificity_smaller_rule_key_wins():
    beta = _rule("beta", priority=50, group=GROUP_B, mailbox="support@x")
    alpha = _rule("alpha", priority=50, group=GROUP_A, ticket_type="incident")
    ticket = TicketAttributes(mailbox="support@x", ticket_type="incident")

    assert resolve(ticket, [beta, alpha]) == GROUP_A
    assert select_rule(ticket, [alpha, beta]).rule_key == "alpha"


def test_priority_is_evaluated_before_specificity():
    """Lower priority wins even when the other rule is more specific."""
    rules = [
        _rule("mailbox_rule", priority=100, group=GROUP_A, mailbox="support@x"),
        _rule("incident_rule", priority=50, group=GROUP_B, ticket_type="incident"),
    ]
    ticket = TicketAttributes(mailbox="support@x", ticket_type="incident")
    assert resolve(ticket, rules) == GROUP_B


def test_failed_mailbox_constraint_falls_through_to_wildcard_rule():
    rules = [
        _rule("mailbox_rule", priority=100, group=GROUP_A, mailbox="support@x"),
        _rule("incident_rule", priority=50, group=GROUP_B, ticket_type="incident"),
    ]
    ticket = TicketAttributes(mailbox="other@x", ticket_type="incident")
    assert resolve(ticket, rules) == GROUP_B


# ─── Outcomes ─────────────────────────────────────────────────────────────────

def test_matched_rule_with_null_group_is_intentionally_unassigned():
    """resolve() returns None, but select_rule() shows a rule did match."""
    quarantine = _rule("quarantine", priority=1, group=None, mailbox="spam@x")
    catch_all = _rule("catch_all", priority=1000, group=GROUP_C)
    ticket = TicketAttributes(mailbox="spam@x")

    assert resolve(ticket, [quarantine, catch_all]) is None
    assert select_rule(ticket, [quarantine, catch_all]) is quarantine


def test_resolve_is_idempotent_and_does_not_mutate_inputs():
    rules = [
        _rule("b", priority=10, group=GROUP_B, category="network"),
        _rule("a", priority=10, group=GROUP_A, category="network"),
        _rule("c", priority=5, group=GROUP_C, is_active=False),
    ]
    snapshot = list(rules)
    ticket = TicketAttributes(category="network")

    first = resolve(ticket, rules)
    second = resolve(ticket, rules)

    assert first == second == GROUP_A
    assert rules == snapshot


def test_works_with_orm_like_rows():
    """Any object exposing the rule attributes is accepted."""
    class Row:
        id = uuid.uuid4()
        rule_key = "row"
        priority = 1
        is_active = True
        match_mailbox = "support@x"
        match_ticket_type = None
        match_category = None
        assignment_group_id = GROUP_A

    assert resolve(TicketAttributes(mailbox="support@x"), [Row()]) == GROUP_A
    snap = RoutingRuleSnapshot.from_row(Row())
    assert snap.rule_key == "row"
    assert snap.assignment_group_id == GROUP_A


# ─── Explanations ─────────────────────────────────────────────────────────────

def test_explain_mentions_rule_and_attributes():
    rule = _rule("incident_rule", priority=50, ticket_type="incident")
    text = explain(TicketAttributes(ticket_type="incident"), rule)
    assert "incident_rule" in text
    assert "priority 50" in text
    assert "ticket_type='incident'" in text


def test_explain_no_match():
    assert explain(TicketAttributes(), None).startswith("No active routing rule matched")
