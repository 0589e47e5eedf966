from __future__ import annotations

from typing import Optional

from webstack.domain.models import ConstructProps
from webstack.graph.model import ConstructGraph, Node
from webstack.graph.resources import (
    ALL_METHODS,
    ALL_ORIGINS,
    BLOCK_ALL,
    Authorizer,
    Behavior,
    Bucket,
    CorsOptions,
    Distribution,
    ErrorResponse,
    LifecycleRule,
    LogGroup,
    OriginAccessIdentity,
    PolicyStatement,
    RestApi,
    UserPool,
    UserPoolClient,
    UserPoolGroup,
    token,
)
from webstack.settings import DeploymentEnv

# (status, ttl seconds) served from /error-pages/<status>.html
ERROR_PAGES: tuple[tuple[int, int], ...] = (
    (400, 300),
    (403, 300),
    (404, 3600),
    (500, 60),
    (502, 60),
    (503, 60),
    (504, 60),
)

# name, description, precedence
DEFAULT_GROUPS: tuple[tuple[str, str, int], ...] = (
    ("admin", "Administrator group with full access to all resources", 1),
    ("moderator", "Moderator group with intermediate access to resources", 5),
    ("user", "Regular user group with limited access to resources", 10),
)


def _bucket_arn(name: str) -> str:
    return f"arn:aws:s3:::{name}"


def _slug(construct_id: str) -> str:
    return "".join(ch if ch.isalnum() else "-" for ch in construct_id.lower()).strip("-")


def create_static_bucket(graph: ConstructGraph, construct_id: str, props: ConstructProps) -> Node:
    name = props.bucket_name or f"{_slug(construct_id)}-static-website"
    bucket = Bucket(
        bucket_name=name,
        arn=_bucket_arn(name),
        block_public_access=BLOCK_ALL,
        versioned=True,
        server_access_logs_prefix="access-logs/" if props.enable_logging else None,
        lifecycle_rules=(
            LifecycleRule(id="DeleteIncompleteMultipartUploads", abort_incomplete_multipart_days=7),
            LifecycleRule(id="DeleteOldVersions", noncurrent_version_expiration_days=30),
        ),
    )
    return graph.add(graph.root, "StaticWebsiteBucket", "bucket", bucket)


def create_origin_access_identity(graph: ConstructGraph, construct_id: str) -> Node:
    path = f"{graph.root.path}/OriginAccessIdentity"
    oai = OriginAccessIdentity(
        comment=f"OAI for {construct_id} static website bucket",
        principal=token(path, "S3CanonicalUserId"),
    )
    return graph.add(graph.root, "OriginAccessIdentity", "origin_access_identity", oai)


def configure_bucket_policy(bucket: Bucket, oai: OriginAccessIdentity) -> None:
    bucket.add_to_resource_policy(
        PolicyStatement(
            sid="AllowCloudFrontAccess",
            actions=("s3:GetObject",),
            resources=(bucket.arn_for_objects("*"),),
            principals=(oai.principal,),
        )
    )
    bucket.add_to_resource_policy(
        PolicyStatement(
            sid="AllowCloudFrontListBucket",
            actions=("s3:ListBucket",),
            resources=(bucket.arn,),
            principals=(oai.principal,),
        )
    )


def create_logging_bucket(graph: ConstructGraph, construct_id: str) -> Node:
    name = f"{_slug(construct_id)}-logs"
    bucket = Bucket(
        bucket_name=name,
        arn=_bucket_arn(name),
        block_public_access=BLOCK_ALL,
        enforce_ssl=True,
        # CloudFront standard logs are delivered with ACLs
        object_ownership="ObjectWriter",
        lifecycle_rules=(LifecycleRule(id="ExpireLogs", expiration_days=90),),
    )
    bucket.add_to_resource_policy(
        PolicyStatement(
            sid="AllowLogDelivery",
            actions=("s3:PutObject",),
            resources=(bucket.arn_for_objects("*"),),
            principals=("delivery.logs.amazonaws.com",),
        )
    )
    bucket.add_to_resource_policy(
        PolicyStatement(
            sid="AllowCloudFrontAclCheck",
            actions=("s3:GetBucketAcl",),
            resources=(bucket.arn,),
            principals=("cloudfront.amazonaws.com",),
        )
    )
    return graph.add(graph.root, "LoggingBucket", "bucket", bucket)


def create_user_pool(
    graph: ConstructGraph, construct_id: str, props: ConstructProps, env: DeploymentEnv
) -> tuple[Node, Node]:
    """Identity pool, its app client and the default role groups."""
    path = f"{graph.root.path}/UserPool"
    pool_id = token(path, "UserPoolId")
    pool = UserPool(
        user_pool_name=props.user_pool_name or f"{construct_id}-user-pool",
        user_pool_id=pool_id,
        arn=env.arn("cognito-idp", f"userpool/{pool_id}"),
    )
    pool_node = graph.add(graph.root, "UserPool", "user_pool", pool)

    client = UserPoolClient(
        client_name=f"{construct_id}-client",
        client_id=token(f"{path}/UserPoolClient", "ClientId"),
    )
    client_node = graph.add(pool_node, "UserPoolClient", "user_pool_client", client)

    for name, description, precedence in DEFAULT_GROUPS:
        graph.add(
            pool_node,
            f"{name.title()}Group",
            "user_pool_group",
            UserPoolGroup(group_name=name, description=description, precedence=precedence),
        )
    return pool_node, client_node


def default_cors(props: ConstructProps) -> CorsOptions:
    if props.domain_name:
        return CorsOptions(
            allow_origins=(f"https://{props.domain_name}",),
            allow_methods=ALL_METHODS,
            allow_credentials=True,
        )
    return CorsOptions(allow_origins=ALL_ORIGINS, allow_methods=ALL_METHODS, allow_credentials=True)


def create_rest_api(graph: ConstructGraph, construct_id: str, props: ConstructProps, env: DeploymentEnv) -> Node:
    path = f"{graph.root.path}/Api"
    log_group: Optional[LogGroup] = None
    if props.enable_logging:
        log_group = LogGroup(
            log_group_name=f"/aws/apigateway/{construct_id}-api",
            arn=env.arn("logs", f"log-group:/aws/apigateway/{construct_id}-api"),
        )

    api = RestApi(
        rest_api_name=props.api_name or f"{construct_id}-api",
        rest_api_id=token(path, "RestApiId"),
        description=f"REST API for {construct_id} serverless web application",
        default_cors=default_cors(props),
        logging_level="INFO" if props.enable_logging else "OFF",
        metrics_enabled=props.enable_logging,
        data_trace_enabled=props.enable_logging,
        access_log_group=log_group,
    )
    node = graph.add(graph.root, "Api", "rest_api", api)
    if log_group is not None:
        graph.add(node, "ApiGatewayLogGroup", "log_group", log_group)
    return node


def create_authorizer(graph: ConstructGraph, api_node: Node, construct_id: str, pool: UserPool) -> Node:
    authorizer = Authorizer(
        name=f"{construct_id}-cognito-authorizer",
        authorizer_id=token(f"{api_node.path}/CognitoAuthorizer", "AuthorizerId"),
        provider_arns=(pool.arn,),
    )
    return graph.add(api_node, "CognitoAuthorizer", "authorizer", authorizer)


def error_responses() -> tuple[ErrorResponse, ...]:
    return tuple(
        ErrorResponse(
            http_status=status,
            response_http_status=status,
            response_page_path=f"/error-pages/{status}.html",
            ttl_seconds=ttl,
        )
        for status, ttl in ERROR_PAGES
    )


def create_distribution(
    graph: ConstructGraph,
    construct_id: str,
    props: ConstructProps,
    env: DeploymentEnv,
    bucket: Bucket,
    api: RestApi,
    logging_bucket: Optional[Bucket],
) -> Node:
    path = f"{graph.root.path}/Distribution"
    region = env.region if env.is_resolved else "us-east-1"

    static_behavior = Behavior(
        origin=f"s3:{bucket.bucket_name}",
        response_headers_policy=f"{construct_id}-static-headers",
    )
    api_behavior = Behavior(
        origin=f"{api.rest_api_id}.execute-api.{region}.amazonaws.com",
        allowed_methods=("GET", "HEAD", "OPTIONS", "PUT", "PATCH", "POST", "DELETE"),
        cached_methods=("GET", "HEAD"),
        cache_policy="CachingDisabled",
        origin_request_policy="AllViewerExceptHostHeader",
        response_headers_policy=f"{construct_id}-api-headers",
    )

    distribution = Distribution(
        comment=f"CloudFront distribution for {construct_id} serverless web application",
        distribution_id=token(path, "DistributionId"),
        default_behavior=static_behavior,
        additional_behaviors={"/api/*": api_behavior},
        domain_names=(props.domain_name,) if props.domain_name else (),
        certificate_arn=props.certificate_arn if props.domain_name else None,
        error_responses=error_responses(),
        error_pages_source=props.error_pages_path or "error-pages",
        log_bucket=logging_bucket.bucket_name if logging_bucket is not None else None,
        log_file_prefix="cloudfront-logs/" if logging_bucket is not None else None,
    )
    return graph.add(graph.root, "Distribution", "distribution", distribution)
