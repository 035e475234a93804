"""Integration test fixtures and configuration."""

import os

import boto3
import pytest
from botocore.exceptions import ClientError, NoCredentialsError


@pytest.fixture
def aws_test_region() -> str:
    """AWS region for integration tests."""
    return os.getenv("AWS_TEST_REGION", "us-east-1")


@pytest.fixture
def aws_test_role_arn() -> str | None:
    """Test AWS role ARN from environment (optional)."""
    return os.getenv("AWS_TEST_ROLE_ARN")


@pytest.fixture
def skip_if_no_aws_credentials():
    """Skip test if AWS credentials are not available."""
    try:
        sts = boto3.client("sts")
        sts.get_caller_identity()
    except (NoCredentialsError, ClientError) as e:
        pytest.skip(f"AWS credentials not available: {e}")


@pytest.fixture
def azure_test_subscription_id() -> str | None:
    """Azure subscription to discover in (optional)."""
    return os.getenv("AZURE_TEST_SUBSCRIPTION_ID")


@pytest.fixture
def skip_if_no_azure_credentials(azure_test_subscription_id: str | None):
    """Skip test if Azure environment credentials are not available."""
    required = ("AZURE_TENANT_ID", "AZURE_CLIENT_ID", "AZURE_CLIENT_SECRET")
    missing = [name for name in required if not os.getenv(name)]
    if missing or not azure_test_subscription_id:
        pytest.skip(
            "Azure credentials not available. Set AZURE_TENANT_ID, AZURE_CLIENT_ID, "
            "AZURE_CLIENT_SECRET and AZURE_TEST_SUBSCRIPTION_ID environment variables."
        )
