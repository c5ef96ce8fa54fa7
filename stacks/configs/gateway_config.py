"""Deployment configuration for the chat gateway.

Values come from CDK context (``cdk.json`` or ``cdk deploy -c key=value``)
and are validated before any construct is created, so a bad CIDR or domain
prefix fails synthesis instead of a CloudFormation deployment.
"""

import ipaddress
import os
import re
from typing import Any

from constructs import Node
from pydantic import BaseModel, Field, field_validator

from stacks.routing.rules import DEFAULT_AUTH_RESULT_HTML

DEFAULT_UNAUTHORIZED_MESSAGE = (
    "Authentication is required to use this chat.\n"
    "Open the URL below to sign in with Amazon Cognito."
)
DEFAULT_UNAUTHORIZED_TITLE = "Unauthenticated"

_DNS_LABEL = re.compile(r"^[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?$")

# CDK context key -> GatewayConfig field
CONTEXT_KEYS: dict[str, str] = {
    "appName": "app_name",
    "allowedCidrs": "allowed_cidrs",
    "hostedZoneName": "hosted_zone_name",
    "hostedZoneId": "hosted_zone_id",
    "subDomain": "sub_domain",
    "cognitoDomainPrefix": "cognito_domain_prefix",
    "vpcId": "vpc_id",
    "unauthorizedMessage": "unauthorized_message",
    "unauthorizedTitle": "unauthorized_title",
    "authResultHtml": "auth_result_html",
}


class GatewayConfig(BaseModel):
    """Configuration model for the authenticated gateway stack.

    Attributes:
        app_name: Prefix for the stack name and resource tags.
        environment: Deployment stage, appended to the stack name.
        allowed_cidrs: Source ranges allowed to reach the public listener.
        hosted_zone_name: Route 53 zone that will carry the gateway record.
        hosted_zone_id: Id of ``hosted_zone_name``.
        sub_domain: Record name inside the hosted zone.
        cognito_domain_prefix: Prefix of the Cognito hosted UI domain.
        vpc_id: Existing VPC to deploy into; a new VPC is created if unset.
        unauthorized_message: Sign-in prompt shown in the mocked chat.
        unauthorized_title: Site title shown in the mocked chat.
        auth_result_html: Page served at ``/auth-result`` after sign-in.
    """

    model_config = {"frozen": True}

    app_name: str = "ChatAuthGateway"
    environment: str = "dev"
    allowed_cidrs: list[str] = Field(min_length=1)
    hosted_zone_name: str
    hosted_zone_id: str
    sub_domain: str = "dify"
    cognito_domain_prefix: str
    vpc_id: str | None = None
    unauthorized_message: str = DEFAULT_UNAUTHORIZED_MESSAGE
    unauthorized_title: str = DEFAULT_UNAUTHORIZED_TITLE
    auth_result_html: str = DEFAULT_AUTH_RESULT_HTML

    @field_validator("allowed_cidrs")
    @classmethod
    def _validate_cidrs(cls, value: list[str]) -> list[str]:
        for cidr in value:
            network = ipaddress.ip_network(cidr, strict=False)
            if network.version != 4:
                msg = f"Only IPv4 ranges are supported, got {cidr}"
                raise ValueError(msg)
        return value

    @field_validator("sub_domain")
    @classmethod
    def _validate_sub_domain(cls, value: str) -> str:
        if not _DNS_LABEL.match(value):
            msg = f"sub_domain must be a single lowercase DNS label, got {value!r}"
            raise ValueError(msg)
        return value

    @field_validator("cognito_domain_prefix")
    @classmethod
    def _validate_domain_prefix(cls, value: str) -> str:
        if not _DNS_LABEL.match(value) or "cognito" in value or "aws" in value:
            msg = (
                "cognito_domain_prefix must be a lowercase DNS label without "
                f"'aws' or 'cognito', got {value!r}"
            )
            raise ValueError(msg)
        return value

    @field_validator("hosted_zone_name")
    @classmethod
    def _strip_trailing_dot(cls, value: str) -> str:
        return value.rstrip(".")

    @property
    def fqdn(self) -> str:
        return f"{self.sub_domain}.{self.hosted_zone_name}"

    @property
    def stack_name(self) -> str:
        return f"{self.app_name}Stack-{self.environment}"

    @property
    def tags(self) -> dict[str, str]:
        return {
            "Environment": self.environment,
            "Application": self.app_name,
            "ManagedBy": "AWS-CDK",
        }

    @classmethod
    def from_context(cls, node: Node, **overrides: Any) -> "GatewayConfig":
        """Build the configuration from CDK context.

        ``allowedCidrs`` may be a list or a comma separated string so it can
        be passed with ``-c``. The stage is taken from the ``environment``
        context key, then the ``ENVIRONMENT`` variable.
        """
        values: dict[str, Any] = {}
        for key, field_name in CONTEXT_KEYS.items():
            value = node.try_get_context(key)
            if value is not None:
                values[field_name] = value

        cidrs = values.get("allowed_cidrs")
        if isinstance(cidrs, str):
            values["allowed_cidrs"] = [c.strip() for c in cidrs.split(",") if c.strip()]

        environment = node.try_get_context("environment") or os.environ.get(
            "ENVIRONMENT",
        )
        if environment:
            values["environment"] = environment

        values.update(overrides)
        return cls(**values)
