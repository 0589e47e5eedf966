from __future__ import annotations

from webstack.domain.models import ResourceConfig
from webstack.graph.model import ConstructGraph, Node
from webstack.graph.resources import ApiMethod, Authorizer, LambdaFunction


def method_for(config: ResourceConfig, function: LambdaFunction, authorizer: Authorizer) -> ApiMethod:
    if not config.requires_auth:
        return ApiMethod(http_method=config.method, function_name=function.function_name)

    return ApiMethod(
        http_method=config.method,
        function_name=function.function_name,
        authorization_type=authorizer.type,
        authorizer_id=authorizer.authorizer_id,
        authorization_scopes=(config.group,) if config.group else (),
    )


def bind_method(
    graph: ConstructGraph,
    resource: Node,
    config: ResourceConfig,
    function: LambdaFunction,
    authorizer: Authorizer,
) -> Node:
    """
    Attach (or re-attach) the ``config.method`` method on a routing node.

    One method node per verb: binding again replaces its authorization state
    instead of adding a second method.
    """
    method = method_for(config, function, authorizer)
    existing = graph.child(resource, config.method, "api_method")
    if existing is not None:
        existing.payload = method
        return existing
    return graph.add(resource, config.method, "api_method", method)
