from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, get_args

from webstack.domain.errors import SecurityValidationError
from webstack.graph.model import AuditedKind, ConstructGraph, Node
from webstack.graph.resources import (
    Bucket,
    Distribution,
    ExecutionRole,
    LambdaFunction,
    PolicyStatement,
    RestApi,
    UserPool,
)
from webstack.provision.permissions import INHERENTLY_UNSCOPED_ACTIONS

logger = logging.getLogger(__name__)

HTTPS_VIEWER_POLICIES = frozenset({"redirect-to-https", "https-only"})
MODERN_TLS_POLICIES = frozenset({"TLSv1.2_2018", "TLSv1.2_2019", "TLSv1.2_2021"})


@dataclass(frozen=True)
class SecurityValidationResult:
    passed: bool
    message: str
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class SecurityValidationOptions:
    throw_on_failure: bool = False
    log_results: bool = True


def _result(kind: str, entity: str, ok_message: str, issues: list[str]) -> SecurityValidationResult:
    if issues:
        message = f"{kind} {entity} has security issues: " + "; ".join(issues)
    else:
        message = ok_message
    return SecurityValidationResult(
        passed=not issues,
        message=message,
        details={"kind": kind, "entity": entity, "issues": issues},
    )


# ----------------------------
# IAM
# ----------------------------


def is_wildcard_action(action: str) -> bool:
    return action == "*" or action.endswith("*")


def is_wildcard_resource(resource: str) -> bool:
    """
    "*" or an ARN whose partition, service, region or account is "*",
    or whose resource part is exactly "*".
    """
    if resource == "*":
        return True
    if not resource.startswith("arn:"):
        return False
    parts = resource.split(":", 5)
    if len(parts) < 6:
        return False
    _, partition, service, region, account, rest = parts
    return "*" in (partition, service, region, account) or rest == "*"


def statement_issues(statement: PolicyStatement) -> list[str]:
    issues = []
    for action in statement.actions:
        if is_wildcard_action(action):
            issues.append(f"statement {statement.sid} uses wildcard action {action!r}")

    unscoped_ok = bool(statement.actions) and all(a in INHERENTLY_UNSCOPED_ACTIONS for a in statement.actions)
    for resource in statement.resources:
        if not is_wildcard_resource(resource):
            continue
        if resource == "*" and unscoped_ok:
            continue
        issues.append(f"statement {statement.sid} uses wildcard resource {resource!r}")
    return issues


def validate_execution_role(role: ExecutionRole) -> SecurityValidationResult:
    issues: list[str] = []
    for statement in role.statements:
        issues.extend(statement_issues(statement))
    return _result("execution_role", role.role_name, f"Role {role.role_name} follows least privilege", issues)


# ----------------------------
# CDN / routing
# ----------------------------


def validate_distribution(distribution: Distribution) -> SecurityValidationResult:
    issues = []
    for pattern, behavior in distribution.behaviors():
        if behavior.viewer_protocol_policy not in HTTPS_VIEWER_POLICIES:
            issues.append(f"behavior {pattern} allows {behavior.viewer_protocol_policy}")
    if distribution.minimum_protocol_version not in MODERN_TLS_POLICIES:
        issues.append(f"minimum protocol version {distribution.minimum_protocol_version} is outdated")
    return _result(
        "distribution",
        distribution.comment,
        "Distribution enforces HTTPS with a modern TLS policy",
        issues,
    )


def validate_rest_api(api: RestApi, graph: ConstructGraph, node: Node) -> SecurityValidationResult:
    issues = []
    if api.default_cors.credentials_with_wildcard:
        issues.append("default CORS allows credentials with a wildcard origin")
    for child in graph.walk(node):
        if child.kind == "api_resource" and child.payload.cors.credentials_with_wildcard:
            issues.append(f"CORS on {child.payload.path} allows credentials with a wildcard origin")
    return _result("rest_api", api.rest_api_name, f"API {api.rest_api_name} has a secure CORS policy", issues)


# ----------------------------
# Storage / compute / identity
# ----------------------------


def validate_bucket(bucket: Bucket) -> SecurityValidationResult:
    issues = []
    if bucket.block_public_access is None or not bucket.block_public_access.fully_blocked:
        issues.append("public access is not fully blocked")
    if not bucket.enforce_ssl:
        issues.append("SSL is not enforced")
    return _result("bucket", bucket.bucket_name, f"Bucket {bucket.bucket_name} is private and SSL-only", issues)


def validate_function(fn: LambdaFunction) -> SecurityValidationResult:
    issues = []
    if fn.tracing != "Active":
        issues.append("tracing is not active")
    if fn.dead_letter_queue is None:
        issues.append("no dead-letter queue")
    if not fn.environment_encryption:
        issues.append("environment is not encrypted")
    return _result("function", fn.function_name, f"Function {fn.function_name} is hardened", issues)


def validate_user_pool(pool: UserPool) -> SecurityValidationResult:
    issues = []
    if not pool.password_policy.is_strong:
        issues.append("password policy is weak")
    if pool.mfa == "OFF":
        issues.append("MFA is disabled")
    return _result("user_pool", pool.user_pool_name, f"User pool {pool.user_pool_name} is hardened", issues)


Rule = Callable[[ConstructGraph, Node], SecurityValidationResult]

_RULES: dict[str, Rule] = {
    "execution_role": lambda g, n: validate_execution_role(n.payload),
    "distribution": lambda g, n: validate_distribution(n.payload),
    "rest_api": lambda g, n: validate_rest_api(n.payload, g, n),
    "bucket": lambda g, n: validate_bucket(n.payload),
    "function": lambda g, n: validate_function(n.payload),
    "user_pool": lambda g, n: validate_user_pool(n.payload),
}

_missing = set(get_args(AuditedKind)) ^ set(_RULES)
if _missing:
    raise RuntimeError(f"audit rules out of sync with AuditedKind: {sorted(_missing)}")


def audit(graph: ConstructGraph) -> list[SecurityValidationResult]:
    """One result per audited node, in traversal order. Read-only."""
    results = []
    for node in graph.walk():
        rule = _RULES.get(node.kind)
        if rule is not None:
            results.append(rule(graph, node))
    return results


def validate_security_configuration(
    graph: ConstructGraph, options: SecurityValidationOptions | None = None
) -> list[SecurityValidationResult]:
    options = options or SecurityValidationOptions()
    results = audit(graph)
    failures = [r for r in results if not r.passed]

    if options.log_results:
        for r in results:
            if r.passed:
                logger.info("PASS %s", r.message)
            else:
                logger.warning("FAIL %s", r.message)
        logger.info("security validation: %d passed, %d failed", len(results) - len(failures), len(failures))

    if failures and options.throw_on_failure:
        raise SecurityValidationError(failures[0])
    return results
