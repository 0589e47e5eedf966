from __future__ import annotations

import logging
import re
from typing import Iterable, Optional

from webstack.domain.errors import ValidationError
from webstack.domain.models import API_PREFIX, ResourceConfig
from webstack.graph.model import ConstructGraph, Node
from webstack.graph.resources import (
    ExecutionRole,
    InvokePermission,
    LambdaFunction,
    LogGroup,
    PolicyStatement,
    Queue,
    UserPool,
    UserPoolClient,
)
from webstack.provision.permissions import derive_permissions
from webstack.provision.registry import FunctionEntry
from webstack.settings import DeploymentEnv

logger = logging.getLogger(__name__)

# Leaves room for the construct id prefix and the "-execution-role" suffix
# inside the 64 character role name limit.
MAX_FUNCTION_NAME_LENGTH = 30
MAX_NAME_LENGTH = 64
FALLBACK_FUNCTION_NAME = "handler"

MANAGED_POLICIES: tuple[str, ...] = (
    "service-role/AWSLambdaBasicExecutionRole",
    "AWSXRayDaemonWriteAccess",
    "CloudWatchLambdaInsightsExecutionRolePolicy",
)

ENVIRONMENT_KEY = "alias/aws/lambda"
BASE_ENVIRONMENT: dict[str, str] = {"APP_ENV": "production", "LOG_LEVEL": "info"}

_NON_ALNUM = re.compile(r"[^a-zA-Z0-9]")
_VALID_NAME = re.compile(r"^[a-zA-Z0-9_-]+$")


def derive_function_name(path: str, method: str) -> str:
    """
    GET /api/users/{id} -> get-users--id

    Deterministic; never longer than MAX_FUNCTION_NAME_LENGTH and never ends
    with a separator.
    """
    if path.startswith(API_PREFIX):
        path = path[len(API_PREFIX):]
    name = f"{method.lower()}{_NON_ALNUM.sub('-', path)}"
    name = name.strip("-") or FALLBACK_FUNCTION_NAME

    if len(name) > MAX_FUNCTION_NAME_LENGTH:
        name = name[:MAX_FUNCTION_NAME_LENGTH]
    return name.rstrip("-") or FALLBACK_FUNCTION_NAME


def validate_function_parameters(function_name: str, source_path: str) -> None:
    if not function_name or not function_name.strip():
        raise ValidationError("Lambda function name is required and cannot be empty")
    if not _VALID_NAME.match(function_name):
        raise ValidationError(
            "Lambda function name can only contain alphanumeric characters, hyphens, and underscores"
        )
    if len(function_name) > MAX_NAME_LENGTH:
        raise ValidationError(f"Lambda function name cannot exceed {MAX_NAME_LENGTH} characters")
    if not source_path or not source_path.strip():
        raise ValidationError("Lambda source path is required and cannot be empty")


class FunctionProvisioner:
    """Creates compute functions, their execution roles and invoke grants."""

    def __init__(
        self,
        graph: ConstructGraph,
        construct_id: str,
        env: DeploymentEnv,
        user_pool: UserPool,
        user_pool_client: UserPoolClient,
    ) -> None:
        self.graph = graph
        self.construct_id = construct_id
        self.env = env
        self.user_pool = user_pool
        self.user_pool_client = user_pool_client

    def _full_name(self, function_name: str) -> str:
        return f"{self.construct_id}-{function_name}"

    def _existing(self, function_name: str) -> Optional[Node]:
        return self.graph.child(self.graph.root, function_name, "function")

    def provision(self, config: ResourceConfig, replacing: Optional[FunctionEntry] = None) -> Node:
        """Function node for a registered endpoint. ``replacing`` is detached first."""
        function_name = derive_function_name(config.path, config.method)
        validate_function_parameters(function_name, config.source_path)

        existing = self._existing(function_name)
        if existing is not None and (replacing is None or existing.index != replacing.node_index):
            raise ValidationError(
                f"{config.method} {config.path} derives function name {function_name!r}, "
                "which is already used by another endpoint"
            )

        if replacing is not None:
            self.graph.detach(replacing.node_index)

        environment = {
            "USER_POOL_ID": self.user_pool.user_pool_id,
            "USER_POOL_CLIENT_ID": self.user_pool_client.client_id,
            "CORS_ORIGIN": "*",
            **config.environment,
        }
        derived = sorted(derive_permissions(config, self.user_pool.arn), key=lambda s: s.sid)
        return self._build(function_name, config.source_path, environment, derived)

    def create_function(
        self,
        function_name: str,
        source_path: str,
        environment: Optional[dict[str, str]] = None,
        additional_policies: Optional[Iterable[PolicyStatement]] = None,
    ) -> Node:
        validate_function_parameters(function_name, source_path)
        if self._existing(function_name) is not None:
            raise ValidationError(f"Lambda function {function_name!r} already exists")
        return self._build(function_name, source_path, dict(environment or {}), list(additional_policies or []))

    def _build(
        self,
        function_name: str,
        source_path: str,
        environment: dict[str, str],
        additional_policies: list[PolicyStatement],
    ) -> Node:
        full_name = self._full_name(function_name)

        log_group = LogGroup(
            log_group_name=f"/aws/lambda/{full_name}",
            arn=self.env.arn("logs", f"log-group:/aws/lambda/{full_name}"),
        )
        queue = Queue(queue_name=f"{full_name}-dlq", arn=self.env.arn("sqs", f"{full_name}-dlq"))
        role = self._execution_role(function_name, log_group, queue, additional_policies)

        function = LambdaFunction(
            function_name=full_name,
            arn=self.env.arn("lambda", f"function:{full_name}"),
            code_path=source_path,
            role=role,
            log_group=log_group,
            environment={**BASE_ENVIRONMENT, **environment},
            dead_letter_queue=queue,
            environment_encryption=ENVIRONMENT_KEY,
            description=f"Lambda function for {function_name} in {self.construct_id} construct",
        )
        function.add_permission(
            InvokePermission(
                id="ApiGatewayInvokePermission",
                principal="apigateway.amazonaws.com",
                action="lambda:InvokeFunction",
                # any API in this account/region may invoke, not one route
                source_arn=self.env.arn("execute-api", "*"),
            )
        )

        node = self.graph.add(self.graph.root, function_name, "function", function)
        self.graph.add(node, f"{function_name}ExecutionRole", "execution_role", role)
        self.graph.add(node, f"{function_name}LogGroup", "log_group", log_group)
        self.graph.add(node, f"{function_name}DeadLetterQueue", "queue", queue)

        logger.debug("provisioned function %s (%d statements)", full_name, len(role.statements))
        return node

    def _execution_role(
        self,
        function_name: str,
        log_group: LogGroup,
        queue: Queue,
        additional_policies: list[PolicyStatement],
    ) -> ExecutionRole:
        role = ExecutionRole(
            role_name=f"{self._full_name(function_name)}-execution-role",
            assumed_by="lambda.amazonaws.com",
            description=f"Execution role for {function_name} Lambda function",
            managed_policies=list(MANAGED_POLICIES),
        )
        role.add_to_policy(
            PolicyStatement(
                sid="CloudWatchLogsAccess",
                actions=("logs:CreateLogStream", "logs:PutLogEvents"),
                resources=(f"{log_group.arn}:*",),
            )
        )
        role.add_to_policy(
            PolicyStatement(
                sid="DeadLetterQueueAccess",
                actions=("sqs:SendMessage",),
                resources=(queue.arn,),
            )
        )
        for statement in additional_policies:
            role.add_to_policy(statement)
        return role
