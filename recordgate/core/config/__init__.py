"""
Gateway configuration loading and layout definition builders.
"""

from .gateway_config import ENV_OVERRIDES, GatewayConfigLoader, LayoutConfigBuilder

__all__ = [
    "ENV_OVERRIDES",
    "GatewayConfigLoader",
    "LayoutConfigBuilder",
]
