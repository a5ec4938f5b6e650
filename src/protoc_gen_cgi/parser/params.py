from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional, Set

# Plugin list used when the request does not mention "plugins" at all.
DEFAULT_PLUGINS = "none"


@dataclass
class GeneratorParams:
    import_prefix: str = ""
    import_path: str = ""
    import_map: Dict[str, str] = field(default_factory=dict)
    plugins: str = DEFAULT_PLUGINS
    raw: Dict[str, str] = field(default_factory=dict)

    def enabled_plugins(self) -> Optional[Set[str]]:
        """Names of the plugins to run, or None to run every registered one."""
        if self.plugins == "":
            return None
        return set(self.plugins.split("+"))


def parse_parameters(parameter: str) -> GeneratorParams:
    """Parse the comma-separated key=value list protoc passes to the plugin.

    Recognized keys: import_prefix, import_path, plugins, and M<file>=<path>
    remaps. Anything else is kept in raw and otherwise ignored.
    """
    params = GeneratorParams()
    if not parameter:
        return params

    for item in parameter.split(","):
        if not item:
            continue
        key, _, value = item.partition("=")
        params.raw[key] = value
        if key == "import_prefix":
            params.import_prefix = value
        elif key == "import_path":
            params.import_path = value
        elif key == "plugins":
            params.plugins = value
        elif key.startswith("M") and len(key) > 1:
            params.import_map[key[1:]] = value
    return params
