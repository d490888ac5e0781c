__all__ = [
    "models",
    "errors",
    "config",
    "validation",
    "state_machine",
    "templates",
    "prompts",
    "llm_provider",
    "logging",
]
