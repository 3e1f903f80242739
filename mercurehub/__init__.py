"""Topic matching, subscribers, metrics and local or Redis update transports for a Mercure hub."""

__version__ = "0.1.0"