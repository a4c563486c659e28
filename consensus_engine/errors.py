"""Exceptions raised while wiring agents, weights and thresholds."""


class ConfigurationError(ValueError):
    """Invalid agent registry, weight table or threshold configuration.

    Raised at construction time, before any evaluation runs.
    """
