"""
Canonical enums for the rollout engine inputs.

Parsers are case-insensitive and return ``None`` for unknown values so the
caller decides whether absence is an error.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional, Type, TypeVar

E = TypeVar("E", bound=Enum)


class DeploymentStrategy(str, Enum):
    """How new manifests are rolled onto the cluster."""
    BASIC = "basic"
    CANARY = "canary"
    BLUE_GREEN = "blue-green"


class TrafficSplitMethod(str, Enum):
    """Canary traffic-shaping backend."""
    POD = "pod"
    SMI = "smi"


class RouteStrategy(str, Enum):
    """How blue/green traffic is switched."""
    INGRESS = "ingress"
    SMI = "smi"
    SERVICE = "service"


class Action(str, Enum):
    """Lifecycle step of a rollout."""
    DEPLOY = "deploy"
    PROMOTE = "promote"
    REJECT = "reject"


def _parse(enum_cls: Type[E], value: Optional[str]) -> Optional[E]:
    if not value:
        return None
    lower = value.lower()
    for member in enum_cls:
        if member.value == lower:
            return member
    return None


def parse_deployment_strategy(value: Optional[str]) -> Optional[DeploymentStrategy]:
    return _parse(DeploymentStrategy, value)


def parse_traffic_split_method(value: Optional[str]) -> Optional[TrafficSplitMethod]:
    return _parse(TrafficSplitMethod, value)


def parse_route_strategy(value: Optional[str]) -> Optional[RouteStrategy]:
    return _parse(RouteStrategy, value)


def parse_action(value: Optional[str]) -> Optional[Action]:
    return _parse(Action, value)
