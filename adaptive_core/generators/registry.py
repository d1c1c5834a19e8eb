"""
Language Generation

Generators render response templates against memory. A host keeps one
GeneratorRegistry; adaptive dialogs install their generator in turn state
for as long as they are running.
"""

import string
import threading
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Callable, Dict, Mapping, Optional, Tuple

import structlog

if TYPE_CHECKING:
    from adaptive_core.dialogs.context import DialogContext


logger = structlog.get_logger(__name__)


GENERATOR_KEY = "adaptive.generator"
GENERATOR_REGISTRY_KEY = "adaptive.generatorRegistry"


class LanguageGenerator(ABC):
    """Base class for language generators."""

    @abstractmethod
    async def generate(
        self,
        dc: "DialogContext",
        template: str,
        data: Optional[Mapping[str, Any]] = None,
    ) -> str:
        """Render a template."""
        raise NotImplementedError


class _MemoryFormatter(string.Formatter):
    """Resolves ``{dialog.name}`` style fields through memory paths."""

    def __init__(self, dc: "DialogContext", data: Optional[Mapping[str, Any]]):
        super().__init__()
        self._dc = dc
        self._data = data or {}

    def get_field(self, field_name: str, args: Any, kwargs: Any) -> Tuple[Any, str]:
        if field_name in self._data:
            return self._data[field_name], field_name
        return self._dc.state.get_value(field_name, ""), field_name


class TemplateGenerator(LanguageGenerator):
    """
    Named templates rendered with str.format syntax.

    Usage:
        generator = TemplateGenerator({"greeting": "Hello {user.name}!"})
        text = await generator.generate(dc, "greeting")
    """

    def __init__(self, templates: Optional[Dict[str, str]] = None):
        self.templates: Dict[str, str] = dict(templates or {})

    def add_template(self, name: str, body: str) -> None:
        self.templates[name] = body

    async def generate(
        self,
        dc: "DialogContext",
        template: str,
        data: Optional[Mapping[str, Any]] = None,
    ) -> str:
        body = self.templates.get(template, template)
        return _MemoryFormatter(dc, data).format(body)


class GeneratorRegistry:
    """
    Per-host registry of generators keyed by resource id.

    Generators are created on first use by the factory.
    """

    def __init__(self, factory: Optional[Callable[[str], LanguageGenerator]] = None):
        self._generators: Dict[str, LanguageGenerator] = {}
        self._factory = factory or (lambda resource_id: TemplateGenerator())
        self._lock = threading.Lock()

    def register(self, resource_id: str, generator: LanguageGenerator) -> None:
        with self._lock:
            self._generators[resource_id] = generator
        logger.debug("generator_registered", resource_id=resource_id)

    def get(self, resource_id: str) -> LanguageGenerator:
        with self._lock:
            generator = self._generators.get(resource_id)
            if generator is None:
                generator = self._factory(resource_id)
                self._generators[resource_id] = generator
                logger.debug("generator_created", resource_id=resource_id)
            return generator

    def __contains__(self, resource_id: str) -> bool:
        return resource_id in self._generators

    def __len__(self) -> int:
        return len(self._generators)


__all__ = [
    "GENERATOR_KEY",
    "GENERATOR_REGISTRY_KEY",
    "GeneratorRegistry",
    "LanguageGenerator",
    "TemplateGenerator",
]
