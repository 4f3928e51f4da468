"""
Shared constants and enums for rollout strategies.

Example:
    from rolloutcore.contracts import DeploymentStrategy, parse_deployment_strategy

    strategy = parse_deployment_strategy("Blue-Green")
    # Returns: DeploymentStrategy.BLUE_GREEN
"""

from rolloutcore.contracts.types import (
    Action,
    DeploymentStrategy,
    RouteStrategy,
    TrafficSplitMethod,
    parse_action,
    parse_deployment_strategy,
    parse_route_strategy,
    parse_traffic_split_method,
)

__all__ = [
    "Action",
    "DeploymentStrategy",
    "RouteStrategy",
    "TrafficSplitMethod",
    "parse_action",
    "parse_deployment_strategy",
    "parse_route_strategy",
    "parse_traffic_split_method",
]
