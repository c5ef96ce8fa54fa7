"""Listener routing policy for the chat gateway load balancer.

Rule tables are plain data so they can be synthesized into listener actions
and evaluated without deploying anything.
"""

from .matcher import (
    Outcome,
    RouteDecision,
    evaluate,
    header_value_matches,
    path_matches,
    resolve_rule,
)
from .rules import (
    MAX_PATH_PATTERNS_PER_RULE,
    Destination,
    FixedResponse,
    HeaderMatch,
    RoutingPolicyError,
    RoutingRule,
    UnauthenticatedBehavior,
    expand_rules,
    internal_listener_rules,
    public_listener_rules,
    split_path_patterns,
    validate_rules,
)

__all__ = [
    "MAX_PATH_PATTERNS_PER_RULE",
    "Destination",
    "FixedResponse",
    "HeaderMatch",
    "Outcome",
    "RouteDecision",
    "RoutingPolicyError",
    "RoutingRule",
    "UnauthenticatedBehavior",
    "evaluate",
    "expand_rules",
    "header_value_matches",
    "internal_listener_rules",
    "path_matches",
    "public_listener_rules",
    "resolve_rule",
    "split_path_patterns",
    "validate_rules",
]
