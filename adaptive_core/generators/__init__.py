"""Language generation for dialog responses."""

from adaptive_core.generators.registry import (
    GENERATOR_KEY,
    GENERATOR_REGISTRY_KEY,
    GeneratorRegistry,
    LanguageGenerator,
    TemplateGenerator,
)

__all__ = [
    "GENERATOR_KEY",
    "GENERATOR_REGISTRY_KEY",
    "GeneratorRegistry",
    "LanguageGenerator",
    "TemplateGenerator",
]
