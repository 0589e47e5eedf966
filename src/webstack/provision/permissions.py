from __future__ import annotations

from webstack.domain.models import ResourceConfig
from webstack.graph.resources import PolicyStatement

IDENTITY_LOOKUP_ACTIONS: tuple[str, ...] = (
    "cognito-idp:GetUser",
    "cognito-idp:ListUsers",
    "cognito-idp:AdminGetUser",
)

GROUP_LOOKUP_ACTIONS: tuple[str, ...] = (
    "cognito-idp:AdminListGroupsForUser",
    "cognito-idp:GetGroup",
)

POOL_LISTING_ACTIONS: tuple[str, ...] = (
    "cognito-idp:ListUserPools",
    "cognito-idp:ListUserPoolClients",
)

# Actions the identity provider only exposes without a resource scope.
# Statements made solely of these may use "*" and still pass the audit.
INHERENTLY_UNSCOPED_ACTIONS: frozenset[str] = frozenset(GROUP_LOOKUP_ACTIONS + POOL_LISTING_ACTIONS)


def derive_permissions(config: ResourceConfig, user_pool_arn: str) -> frozenset[PolicyStatement]:
    """
    Statements a function needs for the capabilities ``config`` declares.

    No auth: nothing. Auth: identity lookups on the pool. Auth + group: also
    group-membership lookups, which are unscoped.
    """
    if not config.requires_auth:
        return frozenset()

    statements = {
        PolicyStatement(
            sid="CognitoAccess",
            actions=IDENTITY_LOOKUP_ACTIONS,
            resources=(user_pool_arn,),
        )
    }
    if config.group:
        statements.add(
            PolicyStatement(
                sid="CognitoGroupAccess",
                actions=GROUP_LOOKUP_ACTIONS,
                resources=("*",),
            )
        )
    return frozenset(statements)


def pool_listing_statement() -> PolicyStatement:
    return PolicyStatement(sid="CognitoListAccess", actions=POOL_LISTING_ACTIONS, resources=("*",))
