"""
Gateway module - Inference service abstraction layer.

Factory function for creating gateway instances based on provider configuration.
"""

from .base import BaseGateway

__all__ = ["BaseGateway", "create_gateway"]


def create_gateway(provider: str, **kwargs) -> BaseGateway:
    """
    Factory function to create a gateway instance based on provider.

    Args:
        provider: Gateway provider name ("responses", "assistants")
        **kwargs: Provider-specific configuration

    Returns:
        BaseGateway implementation instance

    Raises:
        ValueError: If provider is unknown
    """
    if provider == "responses":
        from .responses import ResponsesGateway

        return ResponsesGateway(**kwargs)
    elif provider == "assistants":
        from .assistants import AssistantsGateway

        return AssistantsGateway(**kwargs)
    else:
        raise ValueError(f"Unknown gateway provider: {provider}")
