"""Listener rule tables for the authenticated chat gateway.

The tables in this module are the single description of how the load
balancer routes traffic. ``stacks.network.alb_construct`` turns them into
listener actions and ``stacks.routing.matcher`` evaluates them in tests and
tooling, so both views always agree.

Two listeners share one load balancer:

* The **public** listener serves browsers. The chat bootstrap endpoints are
  sent, unauthenticated, to the auth proxy Lambda.
* The **internal** listener (port 8443) only accepts calls carrying the
  trust header, which the auth proxy adds when it sees a session cookie. It
  re-authenticates the session with Cognito before forwarding to the API.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum

# Application Load Balancer limit on values per condition.
# https://docs.aws.amazon.com/elasticloadbalancing/latest/application/load-balancer-limits.html
MAX_PATH_PATTERNS_PER_RULE = 5
MIN_PRIORITY = 1
MAX_PRIORITY = 50000

TRUST_HEADER_NAME = "X-Internal-Auth"
INTERNAL_LISTENER_PORT = 8443

PROXIED_API_PATHS: tuple[str, ...] = (
    "/api/meta",
    "/api/parameters",
    "/api/conversations",
    "/api/site",
)
STATIC_ASSET_PATHS: tuple[str, ...] = (
    "/embed.min.js",
    "/_next/static/*",
    "favicon.ico",
    "/logo/logo-site.png",
)

DEFAULT_AUTH_RESULT_HTML = (
    "<html><body><h1>Authentication complete</h1>"
    "<div>Return to the original page and reload it.</div></body></html>"
)


class RoutingPolicyError(ValueError):
    """Raised when a rule table violates a listener constraint."""


class Destination(str, Enum):
    """Where a matching request is sent."""

    PROXY_FUNCTION = "ProxyFunction"
    BACKEND_API = "Api"
    FRONTEND_WEB = "Web"
    FIXED_RESPONSE = "FixedResponse"


class UnauthenticatedBehavior(str, Enum):
    """What the listener does with a request lacking a valid session."""

    AUTHENTICATE = "authenticate"
    DENY = "deny"


@dataclass(frozen=True)
class FixedResponse:
    status_code: int
    content_type: str | None = None
    message_body: str | None = None


@dataclass(frozen=True)
class HeaderMatch:
    """Header condition; the name is case-insensitive, values may use globs."""

    name: str
    values: tuple[str, ...]


@dataclass(frozen=True)
class RoutingRule:
    """A single listener rule.

    Attributes:
        name: Construct id used for the listener action.
        priority: Evaluation order, lowest first. ``None`` marks the
            listener default, which matches every request.
        path_patterns: Path globs; empty only for the default rule.
        destination: Target of matching requests.
        header_match: Optional additional header condition.
        authentication: Cognito enforcement, ``None`` for anonymous access.
        fixed_response: Response for ``Destination.FIXED_RESPONSE``.
    """

    name: str
    priority: int | None
    path_patterns: tuple[str, ...]
    destination: Destination
    header_match: HeaderMatch | None = None
    authentication: UnauthenticatedBehavior | None = None
    fixed_response: FixedResponse | None = None

    @property
    def is_default(self) -> bool:
        return self.priority is None

    @property
    def requires_authentication(self) -> bool:
        return self.authentication is not None

    def split(self, limit: int = MAX_PATH_PATTERNS_PER_RULE) -> list[RoutingRule]:
        """Split into rules of at most *limit* path patterns.

        Chunks keep the destination and conditions and take consecutive
        priorities starting at ``self.priority``. A rule that already fits is
        returned unchanged. A non-default rule with neither path patterns
        nor a header condition splits into no rules.
        """
        chunks = split_path_patterns(self.path_patterns, limit)
        if not chunks and not self.is_default and self.header_match is None:
            return []
        if len(chunks) <= 1:
            return [self]
        if self.priority is None:
            msg = f"Default rule {self.name!r} cannot carry path patterns"
            raise RoutingPolicyError(msg)
        return [
            replace(
                self,
                name=f"{self.name}{index}",
                priority=self.priority + index,
                path_patterns=chunk,
            )
            for index, chunk in enumerate(chunks)
        ]


def split_path_patterns(
    patterns: tuple[str, ...] | list[str],
    limit: int = MAX_PATH_PATTERNS_PER_RULE,
) -> list[tuple[str, ...]]:
    """Chunk *patterns* into groups of at most *limit*, preserving order."""
    if limit < 1:
        msg = f"limit must be positive, got {limit}"
        raise ValueError(msg)
    patterns = tuple(patterns)
    return [patterns[i : i + limit] for i in range(0, len(patterns), limit)]


def validate_rules(rules: list[RoutingRule] | tuple[RoutingRule, ...]) -> None:
    """Check a listener rule table.

    Raises:
        RoutingPolicyError: On duplicate names or priorities, priorities out
            of range, a missing or repeated default rule, oversized pattern
            sets, prioritized rules without conditions, or a fixed response
            that does not agree with the destination.
    """
    names: set[str] = set()
    priorities: set[int] = set()
    defaults = 0

    for rule in rules:
        if rule.name in names:
            msg = f"Duplicate rule name {rule.name!r}"
            raise RoutingPolicyError(msg)
        names.add(rule.name)

        if len(rule.path_patterns) > MAX_PATH_PATTERNS_PER_RULE:
            msg = (
                f"Rule {rule.name!r} has {len(rule.path_patterns)} path patterns, "
                f"the limit is {MAX_PATH_PATTERNS_PER_RULE}; split it first"
            )
            raise RoutingPolicyError(msg)

        if (rule.destination is Destination.FIXED_RESPONSE) != (
            rule.fixed_response is not None
        ):
            msg = f"Rule {rule.name!r}: fixed_response must be set exactly for fixed responses"
            raise RoutingPolicyError(msg)

        if rule.is_default:
            defaults += 1
            if rule.path_patterns or rule.header_match:
                msg = f"Default rule {rule.name!r} cannot have conditions"
                raise RoutingPolicyError(msg)
            continue

        if not MIN_PRIORITY <= rule.priority <= MAX_PRIORITY:
            msg = f"Rule {rule.name!r} priority {rule.priority} out of range"
            raise RoutingPolicyError(msg)
        if rule.priority in priorities:
            msg = f"Duplicate priority {rule.priority} (rule {rule.name!r})"
            raise RoutingPolicyError(msg)
        priorities.add(rule.priority)

        if not rule.path_patterns and rule.header_match is None:
            msg = f"Rule {rule.name!r} needs at least one condition"
            raise RoutingPolicyError(msg)

    if defaults != 1:
        msg = f"Expected exactly one default rule, found {defaults}"
        raise RoutingPolicyError(msg)


def expand_rules(
    rules: list[RoutingRule] | tuple[RoutingRule, ...],
) -> tuple[RoutingRule, ...]:
    """Split oversized rules, validate, and sort by priority (default last)."""
    expanded = []
    for rule in rules:
        chunks = rule.split()
        if not chunks:
            msg = f"Rule {rule.name!r} needs at least one condition"
            raise RoutingPolicyError(msg)
        expanded.extend(chunks)
    validate_rules(expanded)
    return tuple(
        sorted(expanded, key=lambda r: (r.priority is None, r.priority or 0)),
    )


def public_listener_rules(
    auth_result_html: str = DEFAULT_AUTH_RESULT_HTML,
) -> tuple[RoutingRule, ...]:
    """Rules of the internet-facing listener."""
    return expand_rules(
        [
            RoutingRule(
                name="PassportApiAllowAction",
                priority=10,
                path_patterns=("/api/passport",),
                destination=Destination.BACKEND_API,
            ),
            RoutingRule(
                name="StaticAssetAction",
                priority=20,
                path_patterns=STATIC_ASSET_PATHS,
                destination=Destination.FRONTEND_WEB,
            ),
            RoutingRule(
                name="ChatAssetAction",
                priority=30,
                path_patterns=("/chat/*", "/chatbot/*"),
                destination=Destination.FRONTEND_WEB,
            ),
            RoutingRule(
                name="InitialApiAction",
                priority=40,
                path_patterns=PROXIED_API_PATHS,
                destination=Destination.PROXY_FUNCTION,
            ),
            RoutingRule(
                name="V1ApiAction",
                priority=50,
                path_patterns=("/v1/*",),
                destination=Destination.BACKEND_API,
            ),
            RoutingRule(
                name="ApiAction",
                priority=60,
                path_patterns=("/api/*", "/console/api/*", "/files/*"),
                destination=Destination.BACKEND_API,
                authentication=UnauthenticatedBehavior.AUTHENTICATE,
            ),
            RoutingRule(
                name="AuthResultMockAction",
                priority=70,
                path_patterns=("/auth-result",),
                destination=Destination.FIXED_RESPONSE,
                authentication=UnauthenticatedBehavior.AUTHENTICATE,
                fixed_response=FixedResponse(
                    status_code=200,
                    content_type="text/html",
                    message_body=auth_result_html,
                ),
            ),
            RoutingRule(
                name="WebAction",
                priority=None,
                path_patterns=(),
                destination=Destination.FRONTEND_WEB,
                authentication=UnauthenticatedBehavior.AUTHENTICATE,
            ),
        ],
    )


def internal_listener_rules(trust_header_value: str) -> tuple[RoutingRule, ...]:
    """Rules of the port 8443 listener reached by the auth proxy."""
    return expand_rules(
        [
            RoutingRule(
                name="InitialApiActionInternal",
                priority=40,
                path_patterns=PROXIED_API_PATHS,
                destination=Destination.BACKEND_API,
                header_match=HeaderMatch(
                    name=TRUST_HEADER_NAME,
                    values=(trust_header_value,),
                ),
                authentication=UnauthenticatedBehavior.DENY,
            ),
            RoutingRule(
                name="InternalDefaultAction",
                priority=None,
                path_patterns=(),
                destination=Destination.FIXED_RESPONSE,
                fixed_response=FixedResponse(status_code=403),
            ),
        ],
    )
