"""Wire built-in handlers into the default registry."""

from tasklane.tools.handlers import (
    CalculateHandler,
    CheckCompletionHandler,
    GetWeatherHandler,
    ValidateResultsHandler,
    VerifyBookingHandler,
)
from tasklane.tools.registry import HandlerRegistry


def create_default_registry() -> HandlerRegistry:
    """Create a registry with all built-in handlers.

    Integration handlers (flights, jobs, forms, social, browser) are
    registered on top of this by the deployment that provides them.
    """
    registry = HandlerRegistry()

    # Utility
    registry.register(GetWeatherHandler())
    registry.register(CalculateHandler())

    # Verification
    registry.register(ValidateResultsHandler())
    registry.register(CheckCompletionHandler())
    registry.register(VerifyBookingHandler())

    return registry
