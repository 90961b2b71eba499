"""Provider factory: create the right provider from a model string."""

from __future__ import annotations

from tasklane.providers.base import CompletionProvider


def parse_model_string(model: str) -> tuple[str, str]:
    """Parse 'provider/model-name' into (provider, model)."""
    if "/" in model:
        provider, model_name = model.split("/", 1)
        return provider.lower(), model_name
    if model.startswith("claude"):
        return "anthropic", model
    if model.startswith(("gpt", "o1", "o3", "o4")):
        return "openai", model
    return "openai", model


def create_provider(model: str) -> CompletionProvider:
    provider, model_name = parse_model_string(model)

    if provider == "anthropic":
        from tasklane.providers.anthropic_provider import AnthropicProvider
        return AnthropicProvider(model=model_name)
    elif provider == "openai":
        from tasklane.providers.openai_provider import OpenAIProvider
        return OpenAIProvider(model=model_name)
    else:
        raise ValueError(f"Unknown provider: {provider}. Use 'anthropic/model' or 'openai/model'.")
