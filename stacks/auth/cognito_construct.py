"""Cognito user pool used by the load balancer's authenticate actions.

The ALB performs the OAuth authorization-code flow itself, so the app client
needs a secret and must list the load balancer's ``/oauth2/idpresponse``
endpoint as its only callback URL.
"""

import aws_cdk as cdk
from aws_cdk import aws_cognito as cognito
from aws_cdk import aws_route53 as route53
from constructs import Construct


class Cognito(Construct):
    """User pool, hosted UI domain and ALB app client.

    Attributes:
        user_pool: Pool holding the chat users.
        user_pool_client: Confidential client used by the load balancer.
        user_pool_domain: Hosted UI domain users are redirected to.
        callback_url: ALB endpoint receiving the authorization code.
    """

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        hosted_zone: route53.IHostedZone,
        sub_domain: str,
        cognito_domain_prefix: str,
        client_name: str = "dify",
        **kwargs,
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)

        self.callback_url = (
            f"https://{sub_domain}.{hosted_zone.zone_name}/oauth2/idpresponse"
        )

        self.user_pool = cognito.UserPool(
            self,
            "CognitoUserPool",
            removal_policy=cdk.RemovalPolicy.DESTROY,
            sign_in_aliases=cognito.SignInAliases(email=True),
            self_sign_up_enabled=True,
            user_verification=cognito.UserVerificationConfig(),
            standard_attributes=cognito.StandardAttributes(
                email=cognito.StandardAttribute(required=True, mutable=False),
            ),
        )

        self.user_pool_domain = self.user_pool.add_domain(
            "CognitoAuthDomain",
            cognito_domain=cognito.CognitoDomainOptions(
                domain_prefix=cognito_domain_prefix,
            ),
        )

        self.user_pool_client = self.user_pool.add_client(
            "CognitoClient",
            user_pool_client_name=client_name,
            generate_secret=True,
            auth_flows=cognito.AuthFlow(user_srp=True, user_password=True),
            o_auth=cognito.OAuthSettings(
                callback_urls=[self.callback_url],
                scopes=[
                    cognito.OAuthScope.EMAIL,
                    cognito.OAuthScope.OPENID,
                    cognito.OAuthScope.PROFILE,
                ],
                flows=cognito.OAuthFlows(authorization_code_grant=True),
            ),
        )
