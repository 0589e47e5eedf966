import pytest

from webstack.settings import ACCOUNT_PLACEHOLDER, REGION_PLACEHOLDER, DeploymentEnv


def test_from_env_reads_cdk_variables(monkeypatch):
    monkeypatch.setenv("CDK_DEFAULT_ACCOUNT", "123456789012")
    monkeypatch.setenv("CDK_DEFAULT_REGION", "EU-West-1")
    env = DeploymentEnv.from_env()
    assert env.account == "123456789012"
    assert env.region == "eu-west-1"
    assert env.is_resolved


def test_region_falls_back_to_aws_region(monkeypatch):
    monkeypatch.delenv("CDK_DEFAULT_ACCOUNT", raising=False)
    monkeypatch.delenv("CDK_DEFAULT_REGION", raising=False)
    monkeypatch.setenv("AWS_REGION", "us-gov-west-1")
    env = DeploymentEnv.from_env()
    assert env.account == ACCOUNT_PLACEHOLDER
    assert env.region == "us-gov-west-1"
    assert not env.is_resolved


def test_unset_environment_uses_placeholders(monkeypatch):
    for name in ("CDK_DEFAULT_ACCOUNT", "CDK_DEFAULT_REGION", "AWS_REGION"):
        monkeypatch.delenv(name, raising=False)
    env = DeploymentEnv.from_env()
    assert (env.account, env.region) == (ACCOUNT_PLACEHOLDER, REGION_PLACEHOLDER)
    assert env.arn("sqs", "q") == f"arn:aws:sqs:{REGION_PLACEHOLDER}:{ACCOUNT_PLACEHOLDER}:q"


def test_malformed_values_are_rejected():
    with pytest.raises(ValueError):
        DeploymentEnv(account="1234").normalized()
    with pytest.raises(ValueError):
        DeploymentEnv(account="123456789012", region="mars").normalized()


def test_arn_overrides():
    env = DeploymentEnv(account="123456789012", region="us-east-1")
    assert env.arn("s3", "bucket", region="", account="") == "arn:aws:s3:::bucket"
