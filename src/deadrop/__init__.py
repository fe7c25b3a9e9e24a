"""deadrop: a durable point-to-point message queue for agents."""

__version__ = "1.0.0"
