"""Application Load Balancer fronting the chat services.

``Alb`` is the plain variant: one listener, restricted to the configured
CIDRs, with path rules added per ECS service. ``AuthorizedAlb`` adds Cognito
authentication and the two-listener arrangement described in
``stacks.routing.rules``: the public listener hands the chat bootstrap calls
to the auth proxy Lambda, which replays signed-in requests against an
internal HTTPS listener that re-checks the session.
"""

import json
import logging

from aws_cdk import Duration
from aws_cdk import aws_certificatemanager as acm
from aws_cdk import aws_ec2 as ec2
from aws_cdk import aws_elasticloadbalancingv2 as elbv2
from aws_cdk import aws_elasticloadbalancingv2_actions as elbv2_actions
from aws_cdk import aws_elasticloadbalancingv2_targets as elbv2_targets
from aws_cdk import aws_route53 as route53
from aws_cdk import aws_route53_targets as route53_targets
from aws_cdk import aws_secretsmanager as secretsmanager
from constructs import Construct

from stacks.auth.cognito_construct import Cognito
from stacks.common.lambda_construct import PowertoolsLambdaConstruct, lambda_code
from stacks.routing.rules import (
    DEFAULT_AUTH_RESULT_HTML,
    INTERNAL_LISTENER_PORT,
    Destination,
    RoutingRule,
    UnauthenticatedBehavior,
    internal_listener_rules,
    public_listener_rules,
)

logger = logging.getLogger(__name__)

_UNAUTHENTICATED_ACTIONS = {
    UnauthenticatedBehavior.AUTHENTICATE: elbv2.UnauthenticatedAction.AUTHENTICATE,
    UnauthenticatedBehavior.DENY: elbv2.UnauthenticatedAction.DENY,
}


class Alb(Construct):
    """Internet-facing load balancer with per-service path routing.

    Attributes:
        url: Base URL users reach the chat on.
        alb: The load balancer.
        listener: Public listener (HTTPS when a hosted zone is given).
        certificate: ACM certificate, ``None`` without a hosted zone.
        target_groups: Target groups keyed by destination.
        listener_priority: Next free priority for ``add_ecs_service``.
    """

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        vpc: ec2.IVpc,
        allowed_cidrs: list[str],
        sub_domain: str = "dify",
        hosted_zone: route53.IHostedZone | None = None,
    ) -> None:
        super().__init__(scope, construct_id)

        self.vpc = vpc
        self.listener_priority = 1
        self.target_groups: dict[Destination, elbv2.ApplicationTargetGroup] = {}

        protocol = (
            elbv2.ApplicationProtocol.HTTPS
            if hosted_zone
            else elbv2.ApplicationProtocol.HTTP
        )
        self.certificate = (
            acm.Certificate(
                self,
                "Certificate",
                domain_name=f"{sub_domain}.{hosted_zone.zone_name}",
                validation=acm.CertificateValidation.from_dns(hosted_zone),
            )
            if hosted_zone
            else None
        )

        self.alb = elbv2.ApplicationLoadBalancer(
            self,
            "Resource",
            vpc=vpc,
            vpc_subnets=ec2.SubnetSelection(subnet_type=ec2.SubnetType.PUBLIC),
            internet_facing=True,
        )
        self.url = f"{protocol.value.lower()}://{self.alb.load_balancer_dns_name}"

        self.listener = self.alb.add_listener(
            "Listener",
            protocol=protocol,
            open=False,
            default_action=elbv2.ListenerAction.fixed_response(400),
            certificates=self._listener_certificates(),
        )
        for cidr in allowed_cidrs:
            self.listener.connections.allow_default_port_from(ec2.Peer.ipv4(cidr))

        if hosted_zone:
            route53.ARecord(
                self,
                "AliasRecord",
                zone=hosted_zone,
                record_name=sub_domain,
                target=route53.RecordTarget.from_alias(
                    route53_targets.LoadBalancerTarget(self.alb),
                ),
            )
            self.url = f"{protocol.value.lower()}://{sub_domain}.{hosted_zone.zone_name}"

    def _listener_certificates(self) -> list[elbv2.IListenerCertificate] | None:
        if self.certificate is None:
            return None
        return [elbv2.ListenerCertificate.from_certificate_manager(self.certificate)]

    def create_target_group(
        self,
        destination: Destination,
        port: int,
        health_check_path: str,
    ) -> elbv2.ApplicationTargetGroup:
        group = elbv2.ApplicationTargetGroup(
            self,
            f"{destination.value}TargetGroup",
            vpc=self.vpc,
            protocol=elbv2.ApplicationProtocol.HTTP,
            port=port,
            target_type=elbv2.TargetType.IP,
            deregistration_delay=Duration.seconds(10),
            health_check=elbv2.HealthCheck(
                path=health_check_path,
                interval=Duration.seconds(15),
                healthy_http_codes="200-299,307",
                healthy_threshold_count=2,
                unhealthy_threshold_count=6,
            ),
        )
        self.target_groups[destination] = group
        return group

    def add_ecs_service(
        self,
        destination: Destination,
        service: elbv2.IApplicationLoadBalancerTarget,
        port: int,
        health_check_path: str,
        paths: list[str],
    ) -> list[RoutingRule]:
        """Attach *service* and route *paths* to it.

        A listener condition accepts at most five path patterns, so larger
        sets become several rules at consecutive priorities.

        Returns:
            The listener rules that were added.
        """
        group = self.target_groups.get(destination) or self.create_target_group(
            destination,
            port,
            health_check_path,
        )
        group.add_target(service)

        rules = RoutingRule(
            name=destination.value,
            priority=self.listener_priority,
            path_patterns=tuple(paths),
            destination=destination,
        ).split()
        for rule in rules:
            self.listener.add_target_groups(
                f"{destination.value}{rule.priority}",
                target_groups=[group],
                conditions=[elbv2.ListenerCondition.path_patterns(list(rule.path_patterns))],
                priority=rule.priority,
            )
        self.listener_priority += len(rules)
        logger.info(
            "Routed %d path pattern(s) to %s in %d rule(s)",
            len(paths),
            destination.value,
            len(rules),
        )
        return rules


class AuthorizedAlb(Alb):
    """Load balancer that requires a Cognito session for the chat.

    Attributes:
        cognito: User pool used by the authenticate actions.
        internal_listener_token_secret: Secret shared by the auth proxy and
            the internal listener.
        auth_proxy: Lambda deciding between mock data and forwarding.
        internal_listener: HTTPS listener reachable with the trust header.
        public_rules: Rule table applied to the public listener.
        internal_rules: Rule table applied to the internal listener.
    """

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        vpc: ec2.IVpc,
        allowed_cidrs: list[str],
        cognito: Cognito,
        hosted_zone: route53.IHostedZone | None,
        sub_domain: str = "dify",
        unauthorized_message: str,
        unauthorized_title: str,
        auth_result_html: str = DEFAULT_AUTH_RESULT_HTML,
    ) -> None:
        if hosted_zone is None:
            msg = "To enforce cognito authentication, you have to set hosted_zone"
            raise ValueError(msg)

        super().__init__(
            scope,
            construct_id,
            vpc=vpc,
            allowed_cidrs=allowed_cidrs,
            sub_domain=sub_domain,
            hosted_zone=hosted_zone,
        )
        self.cognito = cognito
        fqdn = f"{sub_domain}.{hosted_zone.zone_name}"

        self.internal_listener_token_secret = secretsmanager.Secret(
            self,
            "InternalListenerToken",
            generate_secret_string=secretsmanager.SecretStringGenerator(
                generate_string_key="token",
                secret_string_template=json.dumps({}),
                exclude_punctuation=True,
            ),
        )
        token = self.internal_listener_token_secret.secret_value_from_json(
            "token",
        ).unsafe_unwrap()

        self.auth_proxy = PowertoolsLambdaConstruct(
            self,
            "AuthProxyLambda",
            handler="index.handler",
            code=lambda_code("auth_proxy"),
            service_name="auth-proxy",
            description="Serves mock chat data or replays signed-in calls internally",
            environment={
                "INTERNAL_LISTENER_TOKEN": token,
                "ALB_FQDN": fqdn,
                "UNAUTHORIZED_MESSAGE": unauthorized_message,
                "UNAUTHORIZED_TITLE": unauthorized_title,
            },
            vpc=vpc,
            vpc_subnets=ec2.SubnetSelection(
                subnet_type=ec2.SubnetType.PRIVATE_WITH_EGRESS,
            ),
        )

        self.target_groups[Destination.PROXY_FUNCTION] = elbv2.ApplicationTargetGroup(
            self,
            "LambdaTargetGroup",
            target_type=elbv2.TargetType.LAMBDA,
            targets=[elbv2_targets.LambdaTarget(self.auth_proxy.function)],
        )
        self.create_target_group(Destination.BACKEND_API, 5001, "/health")
        self.create_target_group(Destination.FRONTEND_WEB, 3000, "/")

        # The auth proxy reaches this listener through the NAT gateway, so it
        # stays open; only requests with the trust header get past the default.
        self.internal_listener = self.alb.add_listener(
            "InternalHttpsListener",
            port=INTERNAL_LISTENER_PORT,
            protocol=elbv2.ApplicationProtocol.HTTPS,
            certificates=self._listener_certificates(),
        )

        self.internal_rules = internal_listener_rules(token)
        self.public_rules = public_listener_rules(auth_result_html)
        self._apply_rules(self.internal_listener, self.internal_rules)
        self._apply_rules(self.listener, self.public_rules)

    def _apply_rules(
        self,
        listener: elbv2.ApplicationListener,
        rules: tuple[RoutingRule, ...],
    ) -> None:
        for rule in rules:
            action = self._listener_action(rule)
            if rule.is_default:
                listener.add_action(rule.name, action=action)
                continue

            conditions = []
            if rule.path_patterns:
                conditions.append(
                    elbv2.ListenerCondition.path_patterns(list(rule.path_patterns)),
                )
            if rule.header_match is not None:
                conditions.append(
                    elbv2.ListenerCondition.http_header(
                        rule.header_match.name,
                        list(rule.header_match.values),
                    ),
                )
            listener.add_action(
                rule.name,
                action=action,
                conditions=conditions,
                priority=rule.priority,
            )

    def _listener_action(self, rule: RoutingRule) -> elbv2.ListenerAction:
        if rule.destination is Destination.FIXED_RESPONSE:
            action = elbv2.ListenerAction.fixed_response(
                rule.fixed_response.status_code,
                content_type=rule.fixed_response.content_type,
                message_body=rule.fixed_response.message_body,
            )
        else:
            action = elbv2.ListenerAction.forward([self.target_groups[rule.destination]])

        if rule.authentication is None:
            return action
        return elbv2_actions.AuthenticateCognitoAction(
            user_pool=self.cognito.user_pool,
            user_pool_client=self.cognito.user_pool_client,
            user_pool_domain=self.cognito.user_pool_domain,
            next=action,
            on_unauthenticated_request=_UNAUTHENTICATED_ACTIONS[rule.authentication],
        )

    def add_ecs_service(
        self,
        destination: Destination,
        service: elbv2.IApplicationLoadBalancerTarget,
        port: int,
        health_check_path: str,
        paths: list[str],
    ) -> list[RoutingRule]:
        """Attach *service* to its target group.

        Routing is fixed by ``public_rules``, so *paths* are not turned into
        listener rules here.
        """
        group = self.target_groups.get(destination) or self.create_target_group(
            destination,
            port,
            health_check_path,
        )
        group.add_target(service)
        return []
