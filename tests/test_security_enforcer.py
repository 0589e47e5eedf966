from dataclasses import fields, replace
from typing import get_args

from webstack.construct import ServerlessWebApp
from webstack.domain.models import ConstructProps
from webstack.graph.model import AuditedKind
from webstack.graph.resources import PasswordPolicy, PolicyStatement
from webstack.security.enforcer import _FIXERS, SecurityEnforcementOptions
from webstack.settings import DeploymentEnv

ENV = DeploymentEnv(account="123456789012", region="us-east-1")


def _app(**props):
    return ServerlessWebApp("MyApp", props=ConstructProps(**props), env=ENV)


def _failures(app):
    return [r for r in app.validate_security(log_results=False) if not r.passed]


def test_enforce_then_validate_has_no_failures():
    app = _app()
    app.add_resource("/users", source_path="src", requires_auth=True, group="admin")

    changes = app.enforce_security_best_practices()

    assert changes
    assert _failures(app) == []
    assert app.bucket.enforce_ssl is True
    assert app.api.default_cors.allow_credentials is False
    for node in app.graph.of_kind("api_resource"):
        assert not node.payload.cors.credentials_with_wildcard


def test_enforcement_is_idempotent():
    app = _app()
    app.enforce_security_best_practices()
    nodes = len(app.graph)
    first = app.validate_security(log_results=False)

    assert app.enforce_security_best_practices() == []
    assert len(app.graph) == nodes
    assert app.validate_security(log_results=False) == first


def test_routes_added_after_enforcement_inherit_safe_cors():
    app = _app()
    app.enforce_security_best_practices()
    app.add_resource("/late", source_path="src")
    assert _failures(app) == []


def test_over_broad_statements_are_dropped():
    app = _app()
    fn = app.create_lambda_function(
        "worker",
        "src/worker",
        additional_policies=[
            PolicyStatement(sid="Everything", actions=("s3:*",), resources=("*",)),
            PolicyStatement(sid="OneBucket", actions=("s3:GetObject",), resources=("arn:aws:s3:::data/*",)),
        ],
    )

    app.enforce_security_best_practices()

    sids = [s.sid for s in fn.role.statements]
    assert "Everything" not in sids
    assert "OneBucket" in sids


def test_documented_relaxations_survive_enforcement():
    app = _app()
    fn = app.add_resource("/admin", source_path="src", requires_auth=True, group="admin")
    app.enforce_security_best_practices()

    assert "CognitoGroupAccess" in [s.sid for s in fn.role.statements]
    assert "CognitoListAccess" in [s.sid for s in app.get_lambda_function("/config").role.statements]


def test_function_distribution_and_pool_are_repaired():
    app = _app()
    fn = app.get_lambda_function("/health")
    fn.tracing = "PassThrough"
    fn.dead_letter_queue = None
    fn.environment_encryption = None

    dist = app.distribution
    dist.default_behavior = replace(dist.default_behavior, viewer_protocol_policy="allow-all")
    dist.minimum_protocol_version = "TLSv1"

    app.user_pool.mfa = "OFF"
    app.user_pool.password_policy = PasswordPolicy(min_length=6, require_symbols=False)

    failing_kinds = {r.details["kind"] for r in _failures(app)}
    assert {"function", "distribution", "user_pool"} <= failing_kinds

    app.enforce_security_best_practices()

    assert _failures(app) == []
    assert fn.tracing == "Active"
    assert fn.dead_letter_queue.queue_name == "MyApp-get-health-dlq"
    assert dist.default_behavior.viewer_protocol_policy == "redirect-to-https"
    assert dist.minimum_protocol_version == "TLSv1.2_2021"
    assert app.user_pool.mfa == "OPTIONAL"
    assert app.user_pool.password_policy.is_strong


def test_toggles_limit_enforcement():
    app = _app()
    app.enforce_security_best_practices(enforce_s3_security=False)

    failures = _failures(app)
    assert [r.details["kind"] for r in failures] == ["bucket"]
    assert app.bucket.enforce_ssl is False


def test_every_audited_kind_has_a_fixer_and_toggle():
    toggles = {f.name for f in fields(SecurityEnforcementOptions)}
    assert set(_FIXERS) == set(get_args(AuditedKind))
    assert {toggle for toggle, _ in _FIXERS.values()} == toggles
