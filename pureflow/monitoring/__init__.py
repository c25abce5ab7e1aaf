"""
Delivery health monitoring.

Components:
    health: DeliveryHealthMonitor for delivery outcomes
"""

from pureflow.monitoring.health import DeliveryHealthMonitor, create_health_monitor

__all__ = [
    "DeliveryHealthMonitor",
    "create_health_monitor",
]
