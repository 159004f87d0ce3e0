"""
Services Module - infrastructure services for the report pipeline.

- ai: generative-text analysis backend (OpenRouter via the openai SDK)
- identity: bearer-token verification against the identity provider
- logging_config: structured logging and request context
"""
