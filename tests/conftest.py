"""Global pytest configuration and fixtures for CDK and Lambda testing."""

import os
import sys
from pathlib import Path

import pytest
from aws_cdk import App, Environment

# Project root for ``stacks`` / ``app`` and the auth proxy code for ``index``.
project_root = Path(__file__).parent.parent
auth_proxy_root = project_root / "lambdas" / "auth_proxy"
for path in (auth_proxy_root, project_root):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

# Powertools reads these at import time of the Lambda module.
os.environ.setdefault("POWERTOOLS_TRACE_DISABLED", "true")
os.environ.setdefault("POWERTOOLS_SERVICE_NAME", "auth-proxy")


@pytest.fixture(scope="session", autouse=True)
def configure_test_environment():
    """Configure environment variables for consistent testing."""
    test_env = {
        "AWS_DEFAULT_REGION": "us-east-1",
        "AWS_REGION": "us-east-1",
        "CDK_DEFAULT_REGION": "us-east-1",
        "CDK_DEFAULT_ACCOUNT": "123456789012",
        "CDK_DISABLE_VERSION_CHECK": "true",
        # Prevent actual AWS API calls during testing
        "AWS_ACCESS_KEY_ID": "testing",
        "AWS_SECRET_ACCESS_KEY": "testing",
        "AWS_SECURITY_TOKEN": "testing",
        "AWS_SESSION_TOKEN": "testing",
    }

    for key, value in test_env.items():
        if key not in os.environ:
            os.environ[key] = value


# Skips Docker bundling of Lambda assets during synthesis.
NO_BUNDLING_CONTEXT = {"aws:cdk:bundling-stacks": []}


@pytest.fixture
def cdk_app():
    """Create a fresh CDK App instance for each test."""
    return App(context=NO_BUNDLING_CONTEXT)


@pytest.fixture(scope="session")
def aws_environment():
    """Provide AWS environment configuration for testing."""
    return Environment(
        account=os.environ.get("CDK_DEFAULT_ACCOUNT", "123456789012"),
        region=os.environ.get("CDK_DEFAULT_REGION", "us-east-1"),
    )


@pytest.fixture
def gateway_context():
    """CDK context accepted by ``GatewayConfig.from_context``."""
    return {
        "allowedCidrs": ["203.0.113.0/24"],
        "hostedZoneName": "example.com",
        "hostedZoneId": "Z0123456789ABCDEFGHIJ",
        "cognitoDomainPrefix": "chat-gateway-test",
    }


@pytest.fixture
def gateway_cdk_app(gateway_context):
    """CDK App carrying the gateway context, with bundling disabled."""
    return App(context={**gateway_context, **NO_BUNDLING_CONTEXT})


class DummyContext:
    function_name = "auth-proxy"
    memory_limit_in_mb = 256
    invoked_function_arn = "arn:aws:lambda:us-east-1:123456789012:function:auth-proxy"
    aws_request_id = "req-123"


@pytest.fixture
def lambda_context():
    return DummyContext()
