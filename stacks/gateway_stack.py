"""Authenticated gateway stack for a self-hosted chat application.

Creates the edge of the deployment: VPC (unless an existing one is given),
Cognito user pool, ACM certificate, Route 53 alias and the load balancer with
its auth proxy Lambda. The chat's API and web containers are deployed
separately and register with the target groups exported here.
"""

import logging

from aws_cdk import Aspects, CfnOutput, Stack
from aws_cdk import aws_ec2 as ec2
from aws_cdk import aws_route53 as route53
from cdk_nag import AwsSolutionsChecks, NagSuppressions
from constructs import Construct

from stacks.auth.cognito_construct import Cognito
from stacks.configs.gateway_config import GatewayConfig
from stacks.network.alb_construct import AuthorizedAlb
from stacks.routing.rules import Destination

logger = logging.getLogger(__name__)


class ChatGatewayStack(Stack):
    """Load balancer, Cognito and auth proxy in front of the chat services.

    Attributes:
        config: Validated deployment configuration.
        vpc: VPC hosting the load balancer and the auth proxy.
        hosted_zone: Zone carrying the gateway's DNS record.
        cognito: User pool construct.
        alb: Authorized load balancer construct.
    """

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        config: GatewayConfig,
        vpc: ec2.IVpc | None = None,
        **kwargs,
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)

        self.config = config
        self.vpc = vpc or self._create_or_lookup_vpc()
        self.hosted_zone = route53.HostedZone.from_hosted_zone_attributes(
            self,
            "HostedZone",
            hosted_zone_id=config.hosted_zone_id,
            zone_name=config.hosted_zone_name,
        )

        self.cognito = Cognito(
            self,
            "Cognito",
            hosted_zone=self.hosted_zone,
            sub_domain=config.sub_domain,
            cognito_domain_prefix=config.cognito_domain_prefix,
        )

        self.alb = AuthorizedAlb(
            self,
            "Alb",
            vpc=self.vpc,
            allowed_cidrs=config.allowed_cidrs,
            cognito=self.cognito,
            hosted_zone=self.hosted_zone,
            sub_domain=config.sub_domain,
            unauthorized_message=config.unauthorized_message,
            unauthorized_title=config.unauthorized_title,
            auth_result_html=config.auth_result_html,
        )

        self._create_outputs()
        self._add_nag_checks()
        logger.info("Configured %s for %s", construct_id, config.fqdn)

    def _create_or_lookup_vpc(self) -> ec2.IVpc:
        if self.config.vpc_id:
            return ec2.Vpc.from_lookup(self, "Vpc", vpc_id=self.config.vpc_id)
        return ec2.Vpc(
            self,
            "Vpc",
            max_azs=2,
            nat_gateways=1,
            subnet_configuration=[
                ec2.SubnetConfiguration(
                    name="Public",
                    subnet_type=ec2.SubnetType.PUBLIC,
                    cidr_mask=24,
                ),
                ec2.SubnetConfiguration(
                    name="Private",
                    subnet_type=ec2.SubnetType.PRIVATE_WITH_EGRESS,
                    cidr_mask=22,
                ),
            ],
        )

    def _create_outputs(self) -> None:
        CfnOutput(self, "GatewayUrl", value=self.alb.url, description="Chat URL")
        CfnOutput(
            self,
            "LoadBalancerDnsName",
            value=self.alb.alb.load_balancer_dns_name,
        )
        CfnOutput(self, "UserPoolId", value=self.cognito.user_pool.user_pool_id)
        CfnOutput(
            self,
            "UserPoolClientId",
            value=self.cognito.user_pool_client.user_pool_client_id,
        )
        CfnOutput(
            self,
            "ApiTargetGroupArn",
            value=self.alb.target_groups[Destination.BACKEND_API].target_group_arn,
            description="Register the chat API containers (port 5001) here",
        )
        CfnOutput(
            self,
            "WebTargetGroupArn",
            value=self.alb.target_groups[Destination.FRONTEND_WEB].target_group_arn,
            description="Register the chat web containers (port 3000) here",
        )

    def _add_nag_checks(self) -> None:
        Aspects.of(self).add(AwsSolutionsChecks())
        NagSuppressions.add_stack_suppressions(
            self,
            [
                {
                    "id": "AwsSolutions-IAM4",
                    "reason": "AWS managed policies are used for Lambda basic and VPC execution",
                },
                {
                    "id": "AwsSolutions-IAM5",
                    "reason": "Wildcards come from CDK generated X-Ray and VPC policies",
                },
                {
                    "id": "AwsSolutions-L1",
                    "reason": "Runtime is pinned to match the Powertools layer",
                },
                {
                    "id": "AwsSolutions-VPC7",
                    "reason": "Flow logs are out of scope for the gateway VPC",
                },
                {
                    "id": "AwsSolutions-ELB2",
                    "reason": "Access logging is configured per environment outside this stack",
                },
                {
                    "id": "AwsSolutions-EC23",
                    "reason": "The internal listener is gated by the trust header and Cognito",
                },
                {
                    "id": "AwsSolutions-SMG4",
                    "reason": "The listener token is rotated by redeploying the stack",
                },
                {
                    "id": "AwsSolutions-COG1",
                    "reason": "Password policy follows the Cognito defaults",
                },
                {
                    "id": "AwsSolutions-COG2",
                    "reason": "MFA is left to the user pool administrators",
                },
                {
                    "id": "AwsSolutions-COG3",
                    "reason": "Advanced security mode requires the Plus feature plan",
                },
            ],
        )
