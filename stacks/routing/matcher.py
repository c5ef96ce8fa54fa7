"""Evaluate listener rule tables the way an Application Load Balancer does.

Path patterns are case-sensitive globs where ``*`` matches any run of
characters and ``?`` matches exactly one. Header names are compared
case-insensitively, as are header values, which use the same globs.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import Mapping

from .rules import (
    Destination,
    FixedResponse,
    RoutingRule,
    UnauthenticatedBehavior,
)


class Outcome(str, Enum):
    FORWARD = "forward"
    FIXED_RESPONSE = "fixed-response"
    LOGIN_REDIRECT = "login-redirect"
    DENIED = "denied"


@dataclass(frozen=True)
class RouteDecision:
    """Result of routing one request.

    ``destination`` is only set for ``Outcome.FORWARD`` and
    ``fixed_response`` only for ``Outcome.FIXED_RESPONSE``.
    """

    rule: RoutingRule
    outcome: Outcome
    destination: Destination | None = None
    fixed_response: FixedResponse | None = None


@lru_cache(maxsize=256)
def _compile(pattern: str, case_sensitive: bool) -> re.Pattern[str]:
    parts = []
    for char in pattern:
        if char == "*":
            parts.append(".*")
        elif char == "?":
            parts.append(".")
        else:
            parts.append(re.escape(char))
    flags = 0 if case_sensitive else re.IGNORECASE
    return re.compile("".join(parts), flags | re.DOTALL)


def path_matches(pattern: str, path: str) -> bool:
    return _compile(pattern, True).fullmatch(path) is not None


def header_value_matches(pattern: str, value: str) -> bool:
    return _compile(pattern, False).fullmatch(value) is not None


def rule_matches(
    rule: RoutingRule,
    path: str,
    headers: Mapping[str, str] | None = None,
) -> bool:
    """Return whether every condition of *rule* holds for the request."""
    if rule.is_default:
        return True
    if rule.path_patterns and not any(
        path_matches(pattern, path) for pattern in rule.path_patterns
    ):
        return False
    if rule.header_match is not None:
        wanted = rule.header_match.name.lower()
        values = [
            value for name, value in (headers or {}).items() if name.lower() == wanted
        ]
        if not any(
            header_value_matches(pattern, value)
            for pattern in rule.header_match.values
            for value in values
        ):
            return False
    return True


def resolve_rule(
    rules: tuple[RoutingRule, ...] | list[RoutingRule],
    path: str,
    headers: Mapping[str, str] | None = None,
) -> RoutingRule:
    """Return the first matching rule in ascending priority order.

    The default rule is consulted last regardless of its position in
    *rules*.

    Raises:
        LookupError: If nothing matches and the table has no default rule.
    """
    ordered = sorted(
        (rule for rule in rules if not rule.is_default),
        key=lambda rule: rule.priority,
    )
    for rule in ordered:
        if rule_matches(rule, path, headers):
            return rule
    for rule in rules:
        if rule.is_default:
            return rule
    msg = f"No rule matches {path!r} and the table has no default"
    raise LookupError(msg)


def evaluate(
    rules: tuple[RoutingRule, ...] | list[RoutingRule],
    path: str,
    headers: Mapping[str, str] | None = None,
    *,
    authenticated: bool = False,
) -> RouteDecision:
    """Route a request and apply the rule's authentication requirement.

    Args:
        rules: Listener rule table.
        path: Request path.
        headers: Request headers.
        authenticated: Whether the request carries a session the identity
            provider accepts.
    """
    rule = resolve_rule(rules, path, headers)

    if rule.requires_authentication and not authenticated:
        if rule.authentication is UnauthenticatedBehavior.AUTHENTICATE:
            return RouteDecision(rule=rule, outcome=Outcome.LOGIN_REDIRECT)
        return RouteDecision(rule=rule, outcome=Outcome.DENIED)

    if rule.destination is Destination.FIXED_RESPONSE:
        return RouteDecision(
            rule=rule,
            outcome=Outcome.FIXED_RESPONSE,
            fixed_response=rule.fixed_response,
        )
    return RouteDecision(
        rule=rule,
        outcome=Outcome.FORWARD,
        destination=rule.destination,
    )
