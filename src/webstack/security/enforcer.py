from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Callable, get_args

from webstack.graph.model import AuditedKind, ConstructGraph, Node
from webstack.graph.resources import BLOCK_ALL, PasswordPolicy, PolicyStatement, Queue
from webstack.provision.functions import ENVIRONMENT_KEY
from webstack.security.validator import HTTPS_VIEWER_POLICIES, MODERN_TLS_POLICIES, statement_issues

logger = logging.getLogger(__name__)

MINIMUM_TLS = "TLSv1.2_2021"


@dataclass
class SecurityEnforcementOptions:
    enforce_iam_least_privilege: bool = True
    enforce_https: bool = True
    enforce_secure_cors: bool = True
    enforce_s3_security: bool = True
    enforce_lambda_security: bool = True
    enforce_cognito_security: bool = True


def _enforce_role(node: Node) -> list[str]:
    role = node.payload
    kept, dropped = [], []
    for statement in role.statements:
        (dropped if statement_issues(statement) else kept).append(statement)
    if not dropped:
        return []
    role.statements = kept
    for statement in dropped:
        logger.warning("removed over-broad statement %s from %s", statement.sid, role.role_name)
    return [f"{role.role_name}: removed {s.sid}" for s in dropped]


def _enforce_https(node: Node) -> list[str]:
    dist = node.payload
    changes = []
    if dist.default_behavior.viewer_protocol_policy not in HTTPS_VIEWER_POLICIES:
        dist.default_behavior = replace(dist.default_behavior, viewer_protocol_policy="redirect-to-https")
        changes.append("default behavior redirects to HTTPS")
    for pattern, behavior in list(dist.additional_behaviors.items()):
        if behavior.viewer_protocol_policy not in HTTPS_VIEWER_POLICIES:
            dist.additional_behaviors[pattern] = replace(behavior, viewer_protocol_policy="redirect-to-https")
            changes.append(f"behavior {pattern} redirects to HTTPS")
    if dist.minimum_protocol_version not in MODERN_TLS_POLICIES:
        dist.minimum_protocol_version = MINIMUM_TLS
        changes.append(f"minimum protocol set to {MINIMUM_TLS}")
    return changes


def _enforce_cors(graph: ConstructGraph, node: Node) -> list[str]:
    api = node.payload
    changes = []
    if api.default_cors.credentials_with_wildcard:
        api.default_cors = replace(api.default_cors, allow_credentials=False)
        changes.append(f"{api.rest_api_name}: credentials disabled for wildcard origin")
    for child in graph.walk(node):
        if child.kind != "api_resource":
            continue
        resource = child.payload
        if resource.cors.credentials_with_wildcard:
            resource.cors = replace(resource.cors, allow_credentials=False)
            changes.append(f"{resource.path}: credentials disabled for wildcard origin")
    return changes


def _enforce_bucket(node: Node) -> list[str]:
    bucket = node.payload
    changes = []
    if bucket.block_public_access is None or not bucket.block_public_access.fully_blocked:
        bucket.block_public_access = BLOCK_ALL
        changes.append(f"{bucket.bucket_name}: public access blocked")
    if not bucket.enforce_ssl:
        bucket.enforce_ssl = True
        changes.append(f"{bucket.bucket_name}: SSL enforced")
    return changes


def _dead_letter_queue_for(fn) -> Queue:
    # arn:partition:lambda:region:account:function:name
    parts = fn.arn.split(":")
    name = f"{fn.function_name}-dlq"
    return Queue(queue_name=name, arn=f"arn:{parts[1]}:sqs:{parts[3]}:{parts[4]}:{name}")


def _enforce_function(graph: ConstructGraph, node: Node) -> list[str]:
    fn = node.payload
    changes = []
    if fn.tracing != "Active":
        fn.tracing = "Active"
        changes.append(f"{fn.function_name}: tracing enabled")
    if fn.dead_letter_queue is None:
        queue = _dead_letter_queue_for(fn)
        fn.dead_letter_queue = queue
        fn.add_to_role_policy(
            PolicyStatement(sid="DeadLetterQueueAccess", actions=("sqs:SendMessage",), resources=(queue.arn,))
        )
        if graph.child(node, f"{node.id}DeadLetterQueue", "queue") is None:
            graph.add(node, f"{node.id}DeadLetterQueue", "queue", queue)
        changes.append(f"{fn.function_name}: dead-letter queue attached")
    if not fn.environment_encryption:
        fn.environment_encryption = ENVIRONMENT_KEY
        changes.append(f"{fn.function_name}: environment encrypted")
    return changes


def _enforce_user_pool(node: Node) -> list[str]:
    pool = node.payload
    changes = []
    if not pool.password_policy.is_strong:
        current = pool.password_policy
        pool.password_policy = PasswordPolicy(min_length=max(current.min_length, 8))
        changes.append(f"{pool.user_pool_name}: password policy strengthened")
    if pool.mfa == "OFF":
        pool.mfa = "OPTIONAL"
        changes.append(f"{pool.user_pool_name}: MFA set to OPTIONAL")
    return changes


Fixer = Callable[[ConstructGraph, Node], list[str]]

# kind -> (toggle on SecurityEnforcementOptions, fixer)
_FIXERS: dict[str, tuple[str, Fixer]] = {
    "execution_role": ("enforce_iam_least_privilege", lambda g, n: _enforce_role(n)),
    "distribution": ("enforce_https", lambda g, n: _enforce_https(n)),
    "rest_api": ("enforce_secure_cors", _enforce_cors),
    "bucket": ("enforce_s3_security", lambda g, n: _enforce_bucket(n)),
    "function": ("enforce_lambda_security", _enforce_function),
    "user_pool": ("enforce_cognito_security", lambda g, n: _enforce_user_pool(n)),
}

_missing = set(get_args(AuditedKind)) ^ set(_FIXERS)
if _missing:
    raise RuntimeError(f"enforcement fixers out of sync with AuditedKind: {sorted(_missing)}")


def enforce_security_best_practices(
    graph: ConstructGraph, options: SecurityEnforcementOptions | None = None
) -> list[str]:
    """
    Apply corrective configuration for every enabled category.

    Works from the graph alone, never from earlier audit results. Returns a
    description of each change made; a second run on the same graph returns
    an empty list.
    """
    options = options or SecurityEnforcementOptions()
    changes: list[str] = []

    # materialize first: attaching a dead-letter queue adds nodes
    for node in list(graph.walk()):
        entry = _FIXERS.get(node.kind)
        if entry is None:
            continue
        toggle, fixer = entry
        if getattr(options, toggle):
            changes.extend(fixer(graph, node))

    for change in changes:
        logger.info("enforced %s", change)
    logger.info("security enforcement applied %d change(s)", len(changes))
    return changes
