from __future__ import annotations

from typing import Iterable, Optional

from webstack.graph.model import ConstructGraph, Node
from webstack.graph.resources import Alarm, Dashboard, Distribution, LambdaFunction, RestApi

# close to the 30s function timeout
DURATION_THRESHOLD_MS = 25_000


def _api_alarms(construct_id: str, api: RestApi) -> list[tuple[str, Alarm]]:
    dims = (("ApiName", api.rest_api_name), ("Stage", api.stage_name))
    return [
        (
            "ApiGateway4xxAlarm",
            Alarm(
                alarm_name=f"{construct_id}-api-4xx-errors",
                description="API Gateway 4xx error rate is too high",
                namespace="AWS/ApiGateway",
                metric_name="4XXError",
                dimensions=dims,
                threshold=10,
                evaluation_periods=2,
            ),
        ),
        (
            "ApiGateway5xxAlarm",
            Alarm(
                alarm_name=f"{construct_id}-api-5xx-errors",
                description="API Gateway 5xx error rate is too high",
                namespace="AWS/ApiGateway",
                metric_name="5XXError",
                dimensions=dims,
                threshold=5,
                evaluation_periods=2,
            ),
        ),
        (
            "ApiGatewayLatencyAlarm",
            Alarm(
                alarm_name=f"{construct_id}-api-latency",
                description="API Gateway latency is too high",
                namespace="AWS/ApiGateway",
                metric_name="Latency",
                dimensions=dims,
                statistic="Average",
                threshold=5000,
                evaluation_periods=3,
            ),
        ),
    ]


def _distribution_alarms(construct_id: str, distribution: Distribution) -> list[tuple[str, Alarm]]:
    dims = (("DistributionId", distribution.distribution_id), ("Region", "Global"))
    return [
        (
            "CloudFront4xxAlarm",
            Alarm(
                alarm_name=f"{construct_id}-cloudfront-4xx-errors",
                description="CloudFront 4xx error rate is too high",
                namespace="AWS/CloudFront",
                metric_name="4xxErrorRate",
                dimensions=dims,
                statistic="Average",
                threshold=5,
                evaluation_periods=2,
            ),
        ),
        (
            "CloudFront5xxAlarm",
            Alarm(
                alarm_name=f"{construct_id}-cloudfront-5xx-errors",
                description="CloudFront 5xx error rate is too high",
                namespace="AWS/CloudFront",
                metric_name="5xxErrorRate",
                dimensions=dims,
                statistic="Average",
                threshold=1,
                evaluation_periods=2,
            ),
        ),
    ]


def add_function_alarms(graph: ConstructGraph, function_node: Node, dashboard: Optional[Dashboard] = None) -> None:
    """Error and duration alarms, attached below the function node."""
    fn: LambdaFunction = function_node.payload
    dims = (("FunctionName", fn.function_name),)

    graph.add(
        function_node,
        "ErrorsAlarm",
        "alarm",
        Alarm(
            alarm_name=f"{fn.function_name}-errors",
            description=f"Lambda function {fn.function_name} error rate is too high",
            namespace="AWS/Lambda",
            metric_name="Errors",
            dimensions=dims,
            threshold=3,
            evaluation_periods=2,
        ),
    )
    graph.add(
        function_node,
        "DurationAlarm",
        "alarm",
        Alarm(
            alarm_name=f"{fn.function_name}-duration",
            description=f"Lambda function {fn.function_name} duration is too high",
            namespace="AWS/Lambda",
            metric_name="Duration",
            dimensions=dims,
            statistic="Average",
            threshold=DURATION_THRESHOLD_MS,
            evaluation_periods=2,
        ),
    )
    widget = f"Lambda: {fn.function_name}"
    if dashboard is not None and widget not in dashboard.widgets:
        dashboard.widgets.append(widget)


def add_dead_letter_alarm(graph: ConstructGraph, function_node: Node) -> None:
    fn: LambdaFunction = function_node.payload
    if fn.dead_letter_queue is None:
        return
    graph.add(
        function_node,
        "DeadLetterAlarm",
        "alarm",
        Alarm(
            alarm_name=f"{fn.function_name}-dlq-messages",
            description=f"Messages are waiting in the dead-letter queue of {fn.function_name}",
            namespace="AWS/SQS",
            metric_name="ApproximateNumberOfMessagesVisible",
            dimensions=(("QueueName", fn.dead_letter_queue.queue_name),),
            statistic="Maximum",
            threshold=0,
            evaluation_periods=1,
        ),
    )


def create_monitoring(
    graph: ConstructGraph,
    construct_id: str,
    api: RestApi,
    distribution: Distribution,
    function_nodes: Iterable[Node],
) -> Node:
    """Dashboard plus API, CDN and per-function alarms for everything provisioned so far."""
    dashboard = Dashboard(dashboard_name=f"{construct_id}-dashboard")
    node = graph.add(graph.root, "MonitoringDashboard", "dashboard", dashboard)

    dashboard.widgets.append("API Gateway: requests, latency, errors")
    for alarm_id, alarm in _api_alarms(construct_id, api):
        graph.add(node, alarm_id, "alarm", alarm)

    dashboard.widgets.append("CloudFront: requests, cache hit rate, error rates")
    for alarm_id, alarm in _distribution_alarms(construct_id, distribution):
        graph.add(node, alarm_id, "alarm", alarm)

    for fn_node in function_nodes:
        add_function_alarms(graph, fn_node, dashboard)
    return node
