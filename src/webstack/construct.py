from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Optional

from webstack.domain.errors import ValidationError
from webstack.domain.models import API_PREFIX, ConstructProps, EndpointSpec, ResourceConfig
from webstack.graph.model import ConstructGraph, Node
from webstack.graph.resources import (
    Authorizer,
    Bucket,
    Dashboard,
    Distribution,
    GrantableStore,
    LambdaFunction,
    PolicyStatement,
    RestApi,
    UserPool,
    UserPoolClient,
)
from webstack.provision.auth import bind_method
from webstack.provision.functions import FunctionProvisioner
from webstack.provision.monitoring import add_dead_letter_alarm, add_function_alarms, create_monitoring
from webstack.provision.paths import resolve_resource
from webstack.provision.permissions import pool_listing_statement
from webstack.provision.platform import (
    configure_bucket_policy,
    create_authorizer,
    create_distribution,
    create_logging_bucket,
    create_origin_access_identity,
    create_rest_api,
    create_static_bucket,
    create_user_pool,
)
from webstack.provision.registry import FunctionEntry, ResourceRegistry
from webstack.security.enforcer import SecurityEnforcementOptions, enforce_security_best_practices
from webstack.security.validator import (
    SecurityValidationOptions,
    SecurityValidationResult,
    validate_security_configuration,
)
from webstack.settings import DeploymentEnv

logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"
TABLE_ACCESS_LEVELS = ("read", "write", "readwrite")


class ServerlessWebApp:
    """
    One provisioning session: static site, identity pool, REST API and CDN,
    plus every function registered through ``add_resource``.

    The graph and the registry belong to this instance; two sessions never
    share state.
    """

    def __init__(
        self,
        construct_id: str,
        props: Optional[ConstructProps] = None,
        env: Optional[DeploymentEnv] = None,
    ) -> None:
        if not construct_id or not construct_id.strip():
            raise ValidationError("construct id is required")

        self.construct_id = construct_id
        self.props = props or ConstructProps()
        self.env = env or DeploymentEnv.from_env()

        self.graph = ConstructGraph(construct_id)
        self.registry = ResourceRegistry()

        bucket_node = create_static_bucket(self.graph, construct_id, self.props)
        oai_node = create_origin_access_identity(self.graph, construct_id)
        configure_bucket_policy(bucket_node.payload, oai_node.payload)
        self.bucket: Bucket = bucket_node.payload

        pool_node, client_node = create_user_pool(self.graph, construct_id, self.props, self.env)
        self.user_pool: UserPool = pool_node.payload
        self.user_pool_client: UserPoolClient = client_node.payload

        self.api_node: Node = create_rest_api(self.graph, construct_id, self.props, self.env)
        self.api: RestApi = self.api_node.payload
        self.authorizer: Authorizer = create_authorizer(
            self.graph, self.api_node, construct_id, self.user_pool
        ).payload

        self.logging_bucket: Optional[Bucket] = None
        if self.props.enable_logging:
            self.logging_bucket = create_logging_bucket(self.graph, construct_id).payload

        self.distribution: Distribution = create_distribution(
            self.graph, construct_id, self.props, self.env, self.bucket, self.api, self.logging_bucket
        ).payload

        self._provisioner = FunctionProvisioner(
            self.graph, construct_id, self.env, self.user_pool, self.user_pool_client
        )
        self.dashboard: Optional[Dashboard] = None

        self._add_default_endpoints()

        if self.props.enable_logging:
            nodes = [self.graph.get(e.node_index) for e in self.registry]
            self.dashboard = create_monitoring(
                self.graph, construct_id, self.api, self.distribution, nodes
            ).payload

        logger.info(
            "constructed %s: %d nodes, %d endpoints", construct_id, len(self.graph), len(self.registry)
        )

    def _lambda_base_path(self) -> Path:
        if self.props.lambda_source_path:
            return Path(self.props.lambda_source_path)
        return Path(__file__).parent / "lambda"

    def _add_default_endpoints(self) -> None:
        base = self._lambda_base_path()

        def env_for(service: str) -> dict[str, str]:
            return {"API_VERSION": API_VERSION, "SERVICE_NAME": f"{self.construct_id}-{service}"}

        self.add_resource("/health", source_path=str(base / "health"), environment=env_for("health"))
        self.add_resource(
            "/whoami",
            source_path=str(base / "whoami"),
            requires_auth=True,
            environment=env_for("whoami"),
        )
        config_fn = self.add_resource("/config", source_path=str(base / "config"), environment=env_for("config"))
        config_fn.add_to_role_policy(pool_listing_statement())

    # ----------------------------
    # Registration
    # ----------------------------

    def add_resource(
        self,
        path: str,
        method: str = "GET",
        source_path: str = "",
        requires_auth: bool = False,
        group: Optional[str] = None,
        environment: Optional[dict[str, str]] = None,
        enable_dlq: bool = False,
        enable_health_alarms: bool = False,
    ) -> LambdaFunction:
        """
        Register an endpoint served by its own function.

        Registering the same (method, path) again replaces the earlier
        function; the routing node and method are reused. Invalid input
        raises ValidationError before anything is added to the graph.
        """
        spec = EndpointSpec.parse(
            path=path,
            method=method,
            source_path=source_path,
            requires_auth=requires_auth,
            group=group,
            environment=environment or {},
            enable_dlq=enable_dlq,
            enable_health_alarms=enable_health_alarms,
        )
        config = ResourceConfig.from_endpoint(spec)
        previous = self.registry.lookup(*config.key)
        # a replacement keeps the health alarms (and dashboard widget) of the function it replaces
        had_alarms = (
            previous is not None
            and self.graph.child(previous.node_index, "ErrorsAlarm", "alarm") is not None
        )

        fn_node = self._provisioner.provision(config, replacing=previous)
        function: LambdaFunction = fn_node.payload

        resource = resolve_resource(self.graph, self.api_node, spec.path, self.api.default_cors)
        bind_method(self.graph, resource, config, function, self.authorizer)
        self.registry.register(config, FunctionEntry(function=function, config=config, node_index=fn_node.index))

        if config.enable_health_alarms or had_alarms:
            add_function_alarms(self.graph, fn_node, self.dashboard)
        if config.enable_dlq:
            add_dead_letter_alarm(self.graph, fn_node)

        if previous is not None:
            logger.info("replaced %s %s", *config.key)
        else:
            logger.debug("registered %s %s -> %s", config.method, config.path, function.function_name)
        return function

    def create_lambda_function(
        self,
        function_name: str,
        source_path: str,
        environment: Optional[dict[str, str]] = None,
        additional_policies: Optional[Iterable[PolicyStatement]] = None,
    ) -> LambdaFunction:
        """A standalone function; not routed and not in the registry."""
        return self._provisioner.create_function(function_name, source_path, environment, additional_policies).payload

    def get_lambda_function(self, path: str, method: str = "GET") -> Optional[LambdaFunction]:
        entry = self.registry.lookup(method, f"{API_PREFIX}{path}")
        return entry.function if entry is not None else None

    def grant_table_access(self, function: LambdaFunction, table: GrantableStore, access: str = "readwrite") -> None:
        if access not in TABLE_ACCESS_LEVELS:
            raise ValidationError(f"access must be one of: {', '.join(TABLE_ACCESS_LEVELS)}")
        if access == "read":
            table.grant_read(function)
        elif access == "write":
            table.grant_write(function)
        else:
            table.grant_read_write(function)

    # ----------------------------
    # Security
    # ----------------------------

    def validate_security(
        self, throw_on_failure: bool = False, log_results: bool = True
    ) -> list[SecurityValidationResult]:
        return validate_security_configuration(
            self.graph,
            SecurityValidationOptions(throw_on_failure=throw_on_failure, log_results=log_results),
        )

    def enforce_security_best_practices(self, **toggles: bool) -> list[str]:
        return enforce_security_best_practices(self.graph, SecurityEnforcementOptions(**toggles))
