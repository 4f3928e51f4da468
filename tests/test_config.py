"""Tests for RolloutConfig and the config singleton."""

import pytest
from pydantic import ValidationError

from rolloutcore.config import RolloutConfig, get_config, reset_config
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


class TestRolloutConfig:
    def test_defaults(self):
        config = RolloutConfig()
        assert config.strategy is DeploymentStrategy.BASIC
        assert config.action is Action.DEPLOY
        assert config.traffic_split_method is TrafficSplitMethod.POD
        assert config.percentage is None
        assert config.pod_poll_iterations == 60
        assert config.service_poll_iterations == 18

    def test_environment(self, monkeypatch):
        monkeypatch.setenv("ROLLOUTCORE_STRATEGY", "Canary")
        monkeypatch.setenv("ROLLOUTCORE_TRAFFIC_SPLIT_METHOD", "SMI")
        monkeypatch.setenv("ROLLOUTCORE_PERCENTAGE", "20")
        monkeypatch.setenv("ROLLOUTCORE_IMAGE_PULL_SECRETS", "regcred, other")

        config = RolloutConfig()
        assert config.strategy is DeploymentStrategy.CANARY
        assert config.traffic_split_method is TrafficSplitMethod.SMI
        assert config.percentage == 20
        assert config.image_pull_secrets == ["regcred", "other"]

    def test_percentage_range(self):
        with pytest.raises(ValidationError):
            RolloutConfig(percentage=101)
        with pytest.raises(ValidationError):
            RolloutConfig(baseline_and_canary_replicas=-1)

    def test_unknown_strategy(self):
        with pytest.raises(ValidationError):
            RolloutConfig(strategy="rolling")


class TestSingleton:
    def test_same_instance(self):
        assert get_config() is get_config()

    def test_overrides_replace(self):
        first = get_config()
        second = get_config(namespace="shop")
        assert second is not first
        assert get_config() is second
        assert second.namespace == "shop"

    def test_reset(self):
        first = get_config()
        reset_config()
        assert get_config() is not first


def test_parsers_are_case_insensitive():
    assert parse_deployment_strategy("BLUE-GREEN") is DeploymentStrategy.BLUE_GREEN
    assert parse_deployment_strategy("rolling") is None
    assert parse_traffic_split_method("Pod") is TrafficSplitMethod.POD
    assert parse_route_strategy("Service") is RouteStrategy.SERVICE
    assert parse_action("PROMOTE") is Action.PROMOTE
    assert parse_action(None) is None
