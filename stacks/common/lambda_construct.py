"""Lambda construct with the Powertools layer and ARM64 architecture.

Function code is taken from a directory under ``lambdas/``; when the
directory contains a ``requirements.txt`` the dependencies are installed into
the asset at synthesis time.
"""

from pathlib import Path

from aws_cdk import (
    BundlingOptions,
    Duration,
    RemovalPolicy,
    Stack,
    aws_ec2 as ec2,
    aws_lambda as lambda_,
    aws_logs as logs,
)
from constructs import Construct

LAMBDAS_ROOT = Path(__file__).resolve().parents[2] / "lambdas"

POWERTOOLS_LAYER_ARN = (
    "arn:aws:lambda:{region}:017000801446:layer:"
    "AWSLambdaPowertoolsPythonV3-python312-arm64:18"
)


def lambda_code(name: str) -> lambda_.Code:
    """Asset for ``lambdas/<name>``, bundling its requirements if any."""
    source = LAMBDAS_ROOT / name
    if not (source / "requirements.txt").exists():
        return lambda_.Code.from_asset(str(source))
    return lambda_.Code.from_asset(
        str(source),
        bundling=BundlingOptions(
            image=lambda_.Runtime.PYTHON_3_12.bundling_image,
            command=[
                "bash", "-c",
                "pip install -r requirements.txt -t /asset-output && cp -au . /asset-output",
            ],
        ),
    )


class PowertoolsLambdaConstruct(Construct):
    """Standardized Lambda function with Powertools and ARM64 architecture."""

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        handler: str,
        code: lambda_.Code,
        service_name: str,
        namespace: str = "ChatAuthGateway",
        description: str = "",
        timeout: Duration = Duration.seconds(30),
        memory_size: int = 256,
        environment: dict[str, str] | None = None,
        vpc: ec2.IVpc | None = None,
        vpc_subnets: ec2.SubnetSelection | None = None,
        security_groups: list[ec2.ISecurityGroup] | None = None,
        log_retention: logs.RetentionDays = logs.RetentionDays.ONE_MONTH,
        **kwargs,
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)

        self.service_name = service_name
        self.namespace = namespace

        env_vars = {
            "POWERTOOLS_SERVICE_NAME": service_name,
            "POWERTOOLS_METRICS_NAMESPACE": namespace,
            "POWERTOOLS_LOG_LEVEL": "INFO",
        }
        if environment:
            env_vars.update(environment)

        self.log_group = logs.LogGroup(
            self,
            "LogGroup",
            retention=log_retention,
            removal_policy=RemovalPolicy.DESTROY,
        )

        self.function = lambda_.Function(
            self,
            "Function",
            runtime=lambda_.Runtime.PYTHON_3_12,
            architecture=lambda_.Architecture.ARM_64,
            handler=handler,
            code=code,
            description=description,
            timeout=timeout,
            memory_size=memory_size,
            environment=env_vars,
            layers=[
                lambda_.LayerVersion.from_layer_version_arn(
                    self,
                    "PowerToolsLayer",
                    layer_version_arn=POWERTOOLS_LAYER_ARN.format(
                        region=Stack.of(self).region,
                    ),
                ),
            ],
            vpc=vpc,
            vpc_subnets=vpc_subnets,
            security_groups=security_groups,
            tracing=lambda_.Tracing.ACTIVE,
            log_group=self.log_group,
        )
