from __future__ import annotations

import logging
from typing import Dict, List, Optional, Set, Tuple

from protoc_gen_cgi.errors import GeneratorError
from protoc_gen_cgi.models import FileDescriptor
from protoc_gen_cgi.naming import GO_KEYWORDS, bad_to_underscore, base_name
from protoc_gen_cgi.parser.params import GeneratorParams

logger = logging.getLogger(__name__)

# Packages generated code refers to, registered right after our own name.
SUPPORT_PACKAGES = ("fmt", "math", "proto")


class PackageNamer:
    """Registry of Go package names used in the output.

    Every file of the request, and every support package, gets a name no
    other package uses in this run. The first registrant of a name keeps it;
    later ones get a numeric suffix.
    """

    def __init__(self):
        self._in_use: Set[str] = set()

    def register_unique(self, candidate: str, file: Optional[FileDescriptor] = None) -> str:
        pkg = bad_to_underscore(candidate)
        orig = pkg
        i = 1
        while pkg in self._in_use:
            pkg = f"{orig}{i}"
            i += 1
        self._in_use.add(pkg)
        if file is not None:
            file.package_name = pkg
        return pkg

    def __contains__(self, name: str) -> bool:
        return name in self._in_use

    def set_package_names(
        self,
        gen_files: List[FileDescriptor],
        all_files: List[FileDescriptor],
        params: GeneratorParams,
    ) -> Tuple[str, Dict[str, str]]:
        """Pick the package name for this run and name every other file.

        Returns our own package name and the names the support packages are
        imported under.
        """
        pkg, explicit = _package_name_for(gen_files[0], params)
        for f in gen_files:
            this_pkg, this_explicit = _package_name_for(f, params)
            if not this_explicit:
                continue
            if not explicit:
                # One file's explicit name serves for every input file.
                pkg, explicit = this_pkg, True
            elif this_pkg != pkg:
                raise GeneratorError(f"inconsistent package names: {this_pkg} {pkg}")

        if not explicit:
            default = default_go_package(params.import_path)
            if default:
                pkg, explicit = default, True

        if not explicit:
            for f in gen_files:
                this_pkg, _ = _package_name_for(f, params)
                if this_pkg != pkg:
                    raise GeneratorError(f"inconsistent package names: {this_pkg} {pkg}")

        # Registered first, so it is never renamed.
        package_name = self.register_unique(pkg, gen_files[0])
        support = {name: self.register_unique(name) for name in SUPPORT_PACKAGES}

        generating = set(id(f) for f in gen_files)
        for f in all_files:
            if id(f) in generating:
                f.package_name = package_name
                continue
            # go_package of a dependency only matters for its own output.
            self.register_unique(f.package or base_name(f.name), f)
            logger.debug("dependency %s uses package %s", f.name, f.package_name)
        return package_name, support


def _package_name_for(fd: FileDescriptor, params: GeneratorParams) -> Tuple[str, bool]:
    override = params.import_map.get(fd.name)
    if override:
        if ";" in override:
            name = override[override.index(";") + 1:]
        else:
            name = override.rsplit("/", 1)[-1]
        if name:
            return name, True
    return fd.go_package_name()


def default_go_package(import_path: str) -> str:
    """Package name derived from the import_path parameter, or ""."""
    p = import_path.rsplit("/", 1)[-1]
    if not p:
        return ""
    p = bad_to_underscore(p)
    if p in GO_KEYWORDS:
        p = "_" + p
    if p[0].isdigit():
        p = "_" + p
    return p
