"""
rolloutcore - progressive rollout of workload manifests onto Kubernetes.

Strategies:
- basic: apply manifests as they are
- canary: stable/canary/baseline variants, weighted by pod count or by an
  SMI TrafficSplit
- blue-green: green variants behind service selector switching

Every action finishes with a stability check (rollout status, pod
readiness, load-balancer IP assignment).

Example usage:
    from rolloutcore import RolloutEngine, get_config

    engine = RolloutEngine(get_config(strategy="canary", percentage=20))
    engine.deploy(["manifests/web.yaml"])
"""

__version__ = "0.1.0"
__all__ = [
    "RolloutEngine",
    "RolloutConfig",
    "get_config",
    "classify",
    "__version__",
]


# Lazy imports to avoid loading pydantic at import time
def __getattr__(name: str):
    if name == "RolloutEngine":
        from rolloutcore.actions import RolloutEngine
        return RolloutEngine
    if name == "RolloutConfig":
        from rolloutcore.config import RolloutConfig
        return RolloutConfig
    if name == "get_config":
        from rolloutcore.config import get_config
        return get_config
    if name == "classify":
        from rolloutcore.manifests.classifier import classify
        return classify
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
