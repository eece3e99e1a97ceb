from .registry import build_providers, ProviderSet
from .simulator import TrafficSimulator

__all__ = [
    "build_providers",
    "ProviderSet",
    "TrafficSimulator",
]
