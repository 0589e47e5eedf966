from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Protocol


def token(node_path: str, attribute: str) -> str:
    """Deploy-time reference to an attribute of the node at ``node_path``."""
    return "${Token[" + f"{node_path}.{attribute}" + "]}"


# ----------------------------
# IAM
# ----------------------------


@dataclass(frozen=True)
class PolicyStatement:
    sid: str
    actions: tuple[str, ...]
    resources: tuple[str, ...]
    effect: str = "Allow"
    principals: tuple[str, ...] = ()

    def to_json(self) -> dict:
        out: dict = {
            "Sid": self.sid,
            "Effect": self.effect,
            "Action": list(self.actions),
            "Resource": list(self.resources),
        }
        if self.principals:
            out["Principal"] = list(self.principals)
        return out


@dataclass
class ExecutionRole:
    role_name: str
    assumed_by: str
    description: str = ""
    managed_policies: list[str] = field(default_factory=list)
    statements: list[PolicyStatement] = field(default_factory=list)

    def add_to_policy(self, statement: PolicyStatement) -> None:
        if statement not in self.statements:
            self.statements.append(statement)


@dataclass(frozen=True)
class InvokePermission:
    id: str
    principal: str
    action: str
    source_arn: str


# ----------------------------
# Compute
# ----------------------------


@dataclass
class LogGroup:
    log_group_name: str
    arn: str
    retention_days: int = 30
    removal_policy: str = "destroy"


@dataclass
class Queue:
    queue_name: str
    arn: str
    retention_days: int = 14


@dataclass
class LambdaFunction:
    function_name: str
    arn: str
    code_path: str
    role: ExecutionRole
    log_group: LogGroup
    environment: dict[str, str] = field(default_factory=dict)
    runtime: str = "python3.12"
    handler: str = "index.handler"
    memory_size: int = 256
    timeout_seconds: int = 30
    architecture: str = "arm64"
    tracing: str = "Active"
    insights_enabled: bool = True
    dead_letter_queue: Optional[Queue] = None
    retry_attempts: int = 2
    environment_encryption: Optional[str] = None
    description: str = ""
    permissions: list[InvokePermission] = field(default_factory=list)

    def add_to_role_policy(self, statement: PolicyStatement) -> None:
        self.role.add_to_policy(statement)

    def add_permission(self, permission: InvokePermission) -> None:
        # same id replaces
        self.permissions = [p for p in self.permissions if p.id != permission.id]
        self.permissions.append(permission)


# ----------------------------
# Routing
# ----------------------------

DEFAULT_CORS_HEADERS: tuple[str, ...] = (
    "Content-Type",
    "X-Amz-Date",
    "Authorization",
    "X-Api-Key",
    "X-Amz-Security-Token",
    "X-Amz-User-Agent",
    "X-Requested-With",
)

ALL_ORIGINS: tuple[str, ...] = ("*",)
ALL_METHODS: tuple[str, ...] = ("GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS", "HEAD")


@dataclass(frozen=True)
class CorsOptions:
    allow_origins: tuple[str, ...] = ALL_ORIGINS
    allow_methods: tuple[str, ...] = ALL_METHODS
    allow_headers: tuple[str, ...] = DEFAULT_CORS_HEADERS
    allow_credentials: bool = False
    max_age_seconds: int = 3600

    @property
    def has_wildcard_origin(self) -> bool:
        return "*" in self.allow_origins

    @property
    def credentials_with_wildcard(self) -> bool:
        return self.allow_credentials and self.has_wildcard_origin


@dataclass
class RestApi:
    rest_api_name: str
    rest_api_id: str
    description: str = ""
    stage_name: str = "api"
    default_cors: CorsOptions = field(default_factory=CorsOptions)
    throttling_burst_limit: int = 5000
    throttling_rate_limit: int = 2000
    logging_level: str = "INFO"
    metrics_enabled: bool = True
    data_trace_enabled: bool = True
    endpoint_type: str = "REGIONAL"
    binary_media_types: tuple[str, ...] = ("application/octet-stream", "image/*", "multipart/form-data")
    min_compression_size: int = 1024
    access_log_group: Optional[LogGroup] = None


@dataclass
class ApiResource:
    """Routing node: one path segment below the API root."""

    path_part: str
    path: str
    cors: CorsOptions


@dataclass
class ApiMethod:
    http_method: str
    function_name: str
    authorization_type: str = "NONE"
    authorizer_id: Optional[str] = None
    authorization_scopes: tuple[str, ...] = ()
    integration: str = "AWS_PROXY"


@dataclass
class Authorizer:
    name: str
    authorizer_id: str
    provider_arns: tuple[str, ...]
    type: str = "COGNITO_USER_POOLS"
    identity_source: str = "method.request.header.Authorization"
    result_ttl_seconds: int = 300


# ----------------------------
# Identity
# ----------------------------


@dataclass(frozen=True)
class PasswordPolicy:
    min_length: int = 8
    require_lowercase: bool = True
    require_uppercase: bool = True
    require_digits: bool = True
    require_symbols: bool = True

    @property
    def is_strong(self) -> bool:
        return (
            self.min_length >= 8
            and self.require_lowercase
            and self.require_uppercase
            and self.require_digits
            and self.require_symbols
        )


@dataclass
class UserPool:
    user_pool_name: str
    user_pool_id: str
    arn: str
    password_policy: PasswordPolicy = field(default_factory=PasswordPolicy)
    mfa: str = "OPTIONAL"  # OFF | OPTIONAL | ON
    mfa_second_factor: tuple[str, ...] = ("otp",)
    self_sign_up_enabled: bool = True
    sign_in_aliases: tuple[str, ...] = ("email",)
    auto_verify: tuple[str, ...] = ("email",)
    account_recovery: str = "EMAIL_ONLY"
    challenge_required_on_new_device: bool = True
    removal_policy: str = "destroy"


@dataclass
class UserPoolClient:
    client_name: str
    client_id: str
    auth_flows: tuple[str, ...] = ("user_password", "user_srp")
    oauth_flows: tuple[str, ...] = ("authorization_code_grant",)
    oauth_scopes: tuple[str, ...] = ("email", "openid", "profile")
    callback_urls: tuple[str, ...] = ("http://localhost:3000/callback",)
    logout_urls: tuple[str, ...] = ("http://localhost:3000/logout",)
    access_token_validity_minutes: int = 60
    id_token_validity_minutes: int = 60
    refresh_token_validity_days: int = 30
    generate_secret: bool = False
    prevent_user_existence_errors: bool = True


@dataclass
class UserPoolGroup:
    group_name: str
    description: str
    precedence: int


# ----------------------------
# Storage
# ----------------------------


@dataclass(frozen=True)
class PublicAccessBlock:
    block_public_acls: bool = True
    block_public_policy: bool = True
    ignore_public_acls: bool = True
    restrict_public_buckets: bool = True

    @property
    def fully_blocked(self) -> bool:
        return (
            self.block_public_acls
            and self.block_public_policy
            and self.ignore_public_acls
            and self.restrict_public_buckets
        )


BLOCK_ALL = PublicAccessBlock()


@dataclass(frozen=True)
class LifecycleRule:
    id: str
    abort_incomplete_multipart_days: Optional[int] = None
    noncurrent_version_expiration_days: Optional[int] = None
    expiration_days: Optional[int] = None


class GrantableStore(Protocol):
    """Storage collaborator that can hand out scoped access to a function."""

    def grant_read(self, function: LambdaFunction) -> None: ...

    def grant_write(self, function: LambdaFunction) -> None: ...

    def grant_read_write(self, function: LambdaFunction) -> None: ...


@dataclass
class Bucket:
    bucket_name: str
    arn: str
    block_public_access: Optional[PublicAccessBlock] = BLOCK_ALL
    enforce_ssl: bool = False
    encryption: Optional[str] = "S3_MANAGED"
    versioned: bool = False
    object_ownership: str = "BucketOwnerEnforced"
    server_access_logs_prefix: Optional[str] = None
    lifecycle_rules: tuple[LifecycleRule, ...] = ()
    policy: list[PolicyStatement] = field(default_factory=list)

    def add_to_resource_policy(self, statement: PolicyStatement) -> None:
        if statement not in self.policy:
            self.policy.append(statement)

    def arn_for_objects(self, pattern: str) -> str:
        return f"{self.arn}/{pattern}"

    def grant_read(self, function: LambdaFunction) -> None:
        function.add_to_role_policy(
            PolicyStatement(
                sid=f"{_sid(self.bucket_name)}Read",
                actions=("s3:GetObject", "s3:ListBucket"),
                resources=(self.arn, self.arn_for_objects("*")),
            )
        )

    def grant_write(self, function: LambdaFunction) -> None:
        function.add_to_role_policy(
            PolicyStatement(
                sid=f"{_sid(self.bucket_name)}Write",
                actions=("s3:PutObject", "s3:DeleteObject"),
                resources=(self.arn_for_objects("*"),),
            )
        )

    def grant_read_write(self, function: LambdaFunction) -> None:
        self.grant_read(function)
        self.grant_write(function)


_TABLE_READ_ACTIONS = (
    "dynamodb:BatchGetItem",
    "dynamodb:ConditionCheckItem",
    "dynamodb:DescribeTable",
    "dynamodb:GetItem",
    "dynamodb:Query",
    "dynamodb:Scan",
)
_TABLE_WRITE_ACTIONS = (
    "dynamodb:BatchWriteItem",
    "dynamodb:DeleteItem",
    "dynamodb:DescribeTable",
    "dynamodb:PutItem",
    "dynamodb:UpdateItem",
)


@dataclass
class Table:
    """Key-value table owned by the caller; only its grants are modelled."""

    table_name: str
    arn: str
    partition_key: str = "id"

    def _resources(self) -> tuple[str, ...]:
        return (self.arn, f"{self.arn}/index/*")

    def grant_read(self, function: LambdaFunction) -> None:
        function.add_to_role_policy(
            PolicyStatement(sid=f"{_sid(self.table_name)}Read", actions=_TABLE_READ_ACTIONS, resources=self._resources())
        )

    def grant_write(self, function: LambdaFunction) -> None:
        function.add_to_role_policy(
            PolicyStatement(sid=f"{_sid(self.table_name)}Write", actions=_TABLE_WRITE_ACTIONS, resources=self._resources())
        )

    def grant_read_write(self, function: LambdaFunction) -> None:
        self.grant_read(function)
        self.grant_write(function)


def _sid(name: str) -> str:
    return "".join(ch for ch in name.title() if ch.isalnum()) or "Store"


# ----------------------------
# CDN
# ----------------------------


@dataclass
class OriginAccessIdentity:
    comment: str
    principal: str


@dataclass(frozen=True)
class Behavior:
    origin: str
    viewer_protocol_policy: str = "redirect-to-https"
    allowed_methods: tuple[str, ...] = ("GET", "HEAD", "OPTIONS")
    cached_methods: tuple[str, ...] = ("GET", "HEAD", "OPTIONS")
    cache_policy: str = "CachingOptimized"
    origin_request_policy: str = "CORS-S3Origin"
    response_headers_policy: str = ""
    compress: bool = True


@dataclass(frozen=True)
class ErrorResponse:
    http_status: int
    response_http_status: int
    response_page_path: str
    ttl_seconds: int


@dataclass
class Distribution:
    comment: str
    distribution_id: str
    default_behavior: Behavior
    additional_behaviors: dict[str, Behavior] = field(default_factory=dict)
    minimum_protocol_version: str = "TLSv1.2_2021"
    http_version: str = "http2and3"
    domain_names: tuple[str, ...] = ()
    certificate_arn: Optional[str] = None
    default_root_object: str = "index.html"
    error_responses: tuple[ErrorResponse, ...] = ()
    error_pages_source: str = "error-pages"
    price_class: str = "PriceClass_100"
    enable_ipv6: bool = True
    log_bucket: Optional[str] = None
    log_file_prefix: Optional[str] = None

    def behaviors(self) -> list[tuple[str, Behavior]]:
        return [("*", self.default_behavior), *self.additional_behaviors.items()]


# ----------------------------
# Monitoring
# ----------------------------


@dataclass
class Dashboard:
    dashboard_name: str
    widgets: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class Alarm:
    alarm_name: str
    description: str
    namespace: str
    metric_name: str
    dimensions: tuple[tuple[str, str], ...]
    threshold: float
    evaluation_periods: int
    statistic: str = "Sum"
    period_seconds: int = 300
    treat_missing_data: str = "notBreaching"
