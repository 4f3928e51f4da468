"""
Deployment strategy engines.

- canary: shared variant derivation and cleanup
- pod_canary: replica-weighted canary
- smi_canary: TrafficSplit-weighted canary
- blue_green: green variant derivation and service route switching
"""

from rolloutcore.strategies.blue_green import BlueGreenServiceStrategy
from rolloutcore.strategies.pod_canary import PodCanaryStrategy
from rolloutcore.strategies.smi_canary import SmiCanaryStrategy

__all__ = [
    "BlueGreenServiceStrategy",
    "PodCanaryStrategy",
    "SmiCanaryStrategy",
]
