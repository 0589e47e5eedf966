import logging

import pytest

from webstack.construct import ServerlessWebApp
from webstack.domain.errors import SecurityValidationError
from webstack.domain.models import ConstructProps
from webstack.graph.resources import PolicyStatement
from webstack.security.validator import (
    is_wildcard_action,
    is_wildcard_resource,
    statement_issues,
)
from webstack.settings import DeploymentEnv

ENV = DeploymentEnv(account="123456789012", region="us-east-1")


def _app(**props):
    return ServerlessWebApp("MyApp", props=ConstructProps(**props), env=ENV)


@pytest.mark.parametrize(
    "resource, expected",
    [
        ("*", True),
        ("arn:aws:lambda:*:123456789012:function:x", True),
        ("arn:aws:sqs:us-east-1:123456789012:*", True),
        ("arn:*:s3:::bucket", True),
        ("arn:aws:s3:::bucket/*", False),
        ("arn:aws:logs:us-east-1:123456789012:log-group:/aws/lambda/x:*", False),
        ("arn:aws:dynamodb:us-east-1:123456789012:table/items/index/*", False),
    ],
)
def test_wildcard_resources(resource, expected):
    assert is_wildcard_resource(resource) is expected


def test_wildcard_actions():
    assert is_wildcard_action("*")
    assert is_wildcard_action("s3:*")
    assert is_wildcard_action("s3:Get*")
    assert not is_wildcard_action("s3:GetObject")


def test_unscoped_lookups_are_allowed_only_on_their_own():
    allowed = PolicyStatement(
        sid="Groups",
        actions=("cognito-idp:AdminListGroupsForUser", "cognito-idp:GetGroup"),
        resources=("*",),
    )
    mixed = PolicyStatement(
        sid="Mixed",
        actions=("cognito-idp:GetGroup", "cognito-idp:AdminDeleteUser"),
        resources=("*",),
    )
    assert statement_issues(allowed) == []
    assert statement_issues(mixed) == ["statement Mixed uses wildcard resource '*'"]


def test_default_graph_fails_cors_and_static_bucket():
    results = _app().validate_security(log_results=False)

    assert len(results) == 11
    assert results[0].details["kind"] == "bucket"

    failures = [r for r in results if not r.passed]
    assert [(r.details["kind"], r.details["entity"]) for r in failures] == [
        ("bucket", "myapp-static-website"),
        ("rest_api", "MyApp-api"),
    ]
    assert failures[0].details["issues"] == ["SSL is not enforced"]


def test_specific_origin_passes_cors_rule():
    app = _app(domain_name="www.example.com", certificate_arn="arn:aws:acm:us-east-1:123456789012:certificate/x")
    results = app.validate_security(log_results=False)
    api = [r for r in results if r.details["kind"] == "rest_api"]
    assert api[0].passed


def test_audit_is_deterministic_and_read_only():
    app = _app()
    nodes = len(app.graph)
    first = app.validate_security(log_results=False)
    second = app.validate_security(log_results=False)
    assert first == second
    assert len(app.graph) == nodes


def test_throw_on_failure_reports_first_failure():
    app = _app()
    with pytest.raises(SecurityValidationError) as exc:
        app.validate_security(throw_on_failure=True, log_results=False)
    assert exc.value.result.details["entity"] == "myapp-static-website"
    assert str(exc.value).startswith("Security validation failed:")


def test_wildcard_statement_fails_role_rule():
    app = _app()
    app.create_lambda_function(
        "worker",
        "src/worker",
        additional_policies=[PolicyStatement(sid="Everything", actions=("s3:*",), resources=("*",))],
    )
    failures = [r for r in app.validate_security(log_results=False) if not r.passed]
    role = [r for r in failures if r.details["kind"] == "execution_role"]
    assert len(role) == 1
    assert role[0].details["entity"] == "MyApp-worker-execution-role"
    assert len(role[0].details["issues"]) == 2


def test_results_are_logged(caplog):
    app = _app()
    with caplog.at_level(logging.INFO, logger="webstack.security.validator"):
        app.validate_security()

    warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
    assert len(warnings) == 2
    assert any("9 passed, 2 failed" in r.getMessage() for r in caplog.records)
