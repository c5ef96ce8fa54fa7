"""Tests for the listener rule tables and their constraints."""

import pytest

from stacks.routing import (
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

SEVEN_PATHS = tuple(f"/service/{i}/*" for i in range(7))


def default_rule(name="Default"):
    return RoutingRule(
        name=name,
        priority=None,
        path_patterns=(),
        destination=Destination.FRONTEND_WEB,
    )


class TestSplitting:
    """Test suite for the five-pattern limit."""

    def test_split_path_patterns_preserves_order(self):
        chunks = split_path_patterns(SEVEN_PATHS)

        assert chunks == [SEVEN_PATHS[:5], SEVEN_PATHS[5:]]

    def test_split_path_patterns_rejects_bad_limit(self):
        with pytest.raises(ValueError):
            split_path_patterns(SEVEN_PATHS, limit=0)

    def test_rule_within_limit_is_unchanged(self):
        rule = RoutingRule(
            name="Api",
            priority=3,
            path_patterns=SEVEN_PATHS[:5],
            destination=Destination.BACKEND_API,
        )

        assert rule.split() == [rule]

    def test_seven_paths_become_two_consecutive_rules(self):
        """Verify oversized rules take consecutive priorities."""
        rule = RoutingRule(
            name="Api",
            priority=1,
            path_patterns=SEVEN_PATHS,
            destination=Destination.BACKEND_API,
            authentication=UnauthenticatedBehavior.AUTHENTICATE,
        )

        first, second = rule.split()

        assert (first.priority, second.priority) == (1, 2)
        assert (first.name, second.name) == ("Api0", "Api1")
        assert len(first.path_patterns) == 5
        assert len(second.path_patterns) == 2
        assert first.path_patterns + second.path_patterns == SEVEN_PATHS
        assert {first.destination, second.destination} == {Destination.BACKEND_API}
        assert second.authentication is UnauthenticatedBehavior.AUTHENTICATE

    def test_rule_without_conditions_splits_into_nothing(self):
        rule = RoutingRule(
            name="Api",
            priority=1,
            path_patterns=(),
            destination=Destination.BACKEND_API,
        )

        assert rule.split() == []

    def test_header_only_rule_is_kept(self):
        rule = RoutingRule(
            name="Trusted",
            priority=1,
            path_patterns=(),
            destination=Destination.BACKEND_API,
            header_match=HeaderMatch(name="X-Test", values=("1",)),
        )

        assert rule.split() == [rule]

    def test_default_rule_is_kept(self):
        assert default_rule().split() == [default_rule()]

    def test_expand_rules_rejects_rule_without_conditions(self):
        rule = RoutingRule(
            name="Empty",
            priority=1,
            path_patterns=(),
            destination=Destination.BACKEND_API,
        )

        with pytest.raises(RoutingPolicyError, match="at least one condition"):
            expand_rules([rule, default_rule()])

    def test_expand_rules_detects_priority_collision(self):
        """Verify a split chunk cannot land on a neighbour's priority."""
        rules = [
            RoutingRule(
                name="Big",
                priority=10,
                path_patterns=SEVEN_PATHS,
                destination=Destination.BACKEND_API,
            ),
            RoutingRule(
                name="Next",
                priority=11,
                path_patterns=("/next",),
                destination=Destination.BACKEND_API,
            ),
            default_rule(),
        ]

        with pytest.raises(RoutingPolicyError, match="Duplicate priority 11"):
            expand_rules(rules)


class TestValidateRules:
    """Test suite for ``validate_rules``."""

    def test_requires_a_default(self):
        rule = RoutingRule(
            name="Only",
            priority=1,
            path_patterns=("/x",),
            destination=Destination.BACKEND_API,
        )

        with pytest.raises(RoutingPolicyError, match="exactly one default"):
            validate_rules([rule])

    def test_rejects_two_defaults(self):
        with pytest.raises(RoutingPolicyError, match="exactly one default"):
            validate_rules([default_rule("A"), default_rule("B")])

    def test_rejects_oversized_rule(self):
        rule = RoutingRule(
            name="Big",
            priority=1,
            path_patterns=SEVEN_PATHS,
            destination=Destination.BACKEND_API,
        )

        with pytest.raises(RoutingPolicyError, match="split it first"):
            validate_rules([rule, default_rule()])

    def test_rejects_duplicate_names(self):
        rule = RoutingRule(
            name="Default",
            priority=1,
            path_patterns=("/x",),
            destination=Destination.BACKEND_API,
        )

        with pytest.raises(RoutingPolicyError, match="Duplicate rule name"):
            validate_rules([rule, default_rule()])

    @pytest.mark.parametrize("priority", [0, 50001])
    def test_rejects_priority_out_of_range(self, priority):
        rule = RoutingRule(
            name="Edge",
            priority=priority,
            path_patterns=("/x",),
            destination=Destination.BACKEND_API,
        )

        with pytest.raises(RoutingPolicyError, match="out of range"):
            validate_rules([rule, default_rule()])

    def test_rejects_fixed_destination_without_response(self):
        rule = RoutingRule(
            name="Fixed",
            priority=1,
            path_patterns=("/x",),
            destination=Destination.FIXED_RESPONSE,
        )

        with pytest.raises(RoutingPolicyError, match="fixed_response"):
            validate_rules([rule, default_rule()])

    def test_rejects_rule_without_conditions(self):
        rule = RoutingRule(
            name="Empty",
            priority=1,
            path_patterns=(),
            destination=Destination.BACKEND_API,
        )

        with pytest.raises(RoutingPolicyError, match="at least one condition"):
            validate_rules([rule, default_rule()])

    def test_rejects_default_with_conditions(self):
        rule = RoutingRule(
            name="Default",
            priority=None,
            path_patterns=(),
            destination=Destination.BACKEND_API,
            header_match=HeaderMatch(name="X-Test", values=("1",)),
        )

        with pytest.raises(RoutingPolicyError, match="cannot have conditions"):
            validate_rules([rule])


class TestPublicListenerRules:
    """Test suite for the internet-facing rule table."""

    def test_priorities_in_order_with_default_last(self):
        rules = public_listener_rules()

        assert [rule.priority for rule in rules] == [10, 20, 30, 40, 50, 60, 70, None]
        assert rules[-1].name == "WebAction"

    def test_every_rule_within_pattern_limit(self):
        for rule in public_listener_rules() + internal_listener_rules("token"):
            assert len(rule.path_patterns) <= MAX_PATH_PATTERNS_PER_RULE

    def test_anonymous_rules(self):
        """Verify which rules bypass Cognito."""
        anonymous = {
            rule.name
            for rule in public_listener_rules()
            if not rule.requires_authentication
        }

        assert anonymous == {
            "PassportApiAllowAction",
            "StaticAssetAction",
            "ChatAssetAction",
            "InitialApiAction",
            "V1ApiAction",
        }

    def test_auth_result_html_is_configurable(self):
        rules = {rule.name: rule for rule in public_listener_rules("<p>done</p>")}

        assert rules["AuthResultMockAction"].fixed_response == FixedResponse(
            status_code=200,
            content_type="text/html",
            message_body="<p>done</p>",
        )


class TestInternalListenerRules:
    """Test suite for the port 8443 rule table."""

    def test_trust_header_and_deny(self):
        api_rule, default = internal_listener_rules("s3cret")

        assert api_rule.priority == 40
        assert api_rule.header_match == HeaderMatch(
            name="X-Internal-Auth",
            values=("s3cret",),
        )
        assert api_rule.authentication is UnauthenticatedBehavior.DENY
        assert api_rule.destination is Destination.BACKEND_API
        assert default.is_default
        assert default.fixed_response == FixedResponse(status_code=403)
