"""Entry point for the chat auth gateway deployment.

Synthesizes the gateway stack from CDK context, supporting both
environment-based and profile-based account resolution.

Environment Configuration Options:
    1. AWS Named Profile:
       AWS_PROFILE: Named profile from AWS credentials file

    2. Direct Environment Variables:
       AWS_DEFAULT_REGION: Target AWS region for deployment
       CDK_DEFAULT_ACCOUNT: Target AWS account for deployment

Required context (``cdk.json`` or ``-c``): ``allowedCidrs``,
``hostedZoneName``, ``hostedZoneId`` and ``cognitoDomainPrefix``.
"""

import os

import boto3
from aws_cdk import App, Environment

from stacks.configs.gateway_config import GatewayConfig
from stacks.gateway_stack import ChatGatewayStack


def create_deployment_environment(aws_profile: str | None = None) -> Environment:
    """Creates CDK Environment from a profile or the CDK variables.

    Args:
        aws_profile: Optional AWS credentials profile name.

    Returns:
        CDK Environment with account and region resolved.
    """
    if aws_profile:
        session = boto3.Session(profile_name=aws_profile)
        sts = session.client("sts")
        account = sts.get_caller_identity()["Account"]
        return Environment(
            account=account,
            region=session.region_name or "us-east-1",
        )

    return Environment(
        account=os.environ.get("CDK_DEFAULT_ACCOUNT"),
        region=os.environ.get("AWS_DEFAULT_REGION", "us-east-1"),
    )


def initialize_app(app: App | None = None, aws_profile: str | None = None) -> App:
    """Initializes the CDK application with the gateway stack.

    Args:
        app: Existing App to populate; a new one is created if omitted.
        aws_profile: Optional AWS credentials profile to use.

    Returns:
        Configured CDK App instance ready for synthesis.
    """
    app = app or App()
    config = GatewayConfig.from_context(app.node)

    ChatGatewayStack(
        app,
        config.stack_name,
        config=config,
        env=create_deployment_environment(aws_profile),
        description="Cognito authenticated load balancer for the chat application",
        tags=config.tags,
    )
    return app


def main() -> None:
    """Main execution entry point."""
    app = initialize_app(aws_profile=os.environ.get("GATEWAY_AWS_PROFILE"))
    app.synth()


if __name__ == "__main__":
    main()
