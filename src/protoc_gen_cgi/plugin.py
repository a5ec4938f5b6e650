from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, List, Optional, Set, Type

if TYPE_CHECKING:
    from protoc_gen_cgi.generator.file_generator import FileGenerator
    from protoc_gen_cgi.session import CompilationSession

logger = logging.getLogger(__name__)


class Plugin(ABC):
    """Extra generator that appends its own text to every output file.

    generate() runs after the core declarations of a file and before its
    descriptor blob; generate_imports() runs while the deferred import block
    is being written, so anything it prints lands among the imports.
    """

    name: str = ""

    def init(self, session: CompilationSession) -> None:
        self.session = session

    @abstractmethod
    def generate(self, g: FileGenerator) -> None:
        ...

    @abstractmethod
    def generate_imports(self, g: FileGenerator) -> None:
        ...


class PluginRegistry:
    def __init__(self):
        self._classes: List[Type[Plugin]] = []

    def register(self, cls: Type[Plugin]) -> Type[Plugin]:
        self._classes.append(cls)
        return cls

    def names(self) -> List[str]:
        return [cls.name for cls in self._classes]

    def create_enabled(self, enabled: Optional[Set[str]]) -> List[Plugin]:
        """Instantiate the registered plugins named in enabled (all if None)."""
        plugins = [cls() for cls in self._classes if enabled is None or cls.name in enabled]
        if enabled is not None:
            unknown = enabled - set(self.names()) - {"none"}
            for name in sorted(unknown):
                logger.warning("unknown plugin %s requested", name)
        return plugins


default_registry = PluginRegistry()
register_plugin = default_registry.register
