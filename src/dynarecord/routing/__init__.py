"""Entity to backend routing."""

from dynarecord.routing.policy import RoutingPolicy

__all__ = ["RoutingPolicy"]
