from __future__ import annotations

__all__ = [
    "NotReady",
    "Provide",
    "inject",
    "register_loader_containers",
]

import importlib
import importlib.machinery
import logging
import sys
import types
import typing as t

import dependency_injector.wiring as wiring
from dependency_injector.containers import Container
from dependency_injector.wiring import Provide

from rubricate.lib.sentinel import NotReady

logger = logging.getLogger(__name__)

P = t.ParamSpec("P")
TReturn = t.TypeVar("TReturn")


def inject(fn: t.Callable[P, TReturn]) -> t.Callable[P, TReturn]:
    # typed passthrough so decorated signatures survive for pyright
    return t.cast(t.Callable[P, TReturn], wiring.inject(fn))


class PackageWiringLoader(object):
    """Wires modules into containers as they are imported.

    Unlike dependency_injector's own auto-loader, only modules under the
    registered package prefixes are wired, so third-party imports stay cheap.
    """

    def __init__(self) -> None:
        self.containers: dict[str, list[Container]] = {}
        self._path_hook: t.Callable[[str], t.Any] | None = None

    def register(self, *containers: Container, packages: t.Sequence[str]) -> None:
        for package in packages:
            self.containers.setdefault(package, []).extend(containers)
        self.install()

    def wire_module(self, module: types.ModuleType) -> None:
        for package, registered in self.containers.items():
            if module.__name__ == package or module.__name__.startswith(f"{package}."):
                logger.log(5, "wiring module", extra={"wired_module": module.__name__})
                for container in registered:
                    container.wire(modules=[module])

    @property
    def installed(self) -> bool:
        return self._path_hook is not None and self._path_hook in sys.path_hooks

    def install(self) -> None:
        if self.installed:
            return

        loader = self

        class SourceFileLoader(importlib.machinery.SourceFileLoader):
            def exec_module(self, module: types.ModuleType):
                super().exec_module(module)
                loader.wire_module(module)

        class SourcelessFileLoader(importlib.machinery.SourcelessFileLoader):
            def exec_module(self, module: types.ModuleType):
                super().exec_module(module)
                loader.wire_module(module)

        # the hook replaces the default finder, so extension modules still need a loader
        self._path_hook = importlib.machinery.FileFinder.path_hook(
            (importlib.machinery.ExtensionFileLoader, importlib.machinery.EXTENSION_SUFFIXES),
            (SourceFileLoader, importlib.machinery.SOURCE_SUFFIXES),
            (SourcelessFileLoader, importlib.machinery.BYTECODE_SUFFIXES),
        )
        sys.path_hooks.insert(0, self._path_hook)
        sys.path_importer_cache.clear()
        importlib.invalidate_caches()


_loader = PackageWiringLoader()


def register_loader_containers(*containers: Container, packages: t.Sequence[str] = ("rubricate",)) -> None:
    """Wire modules of ``packages`` imported from now on into ``containers``."""
    _loader.register(*containers, packages=packages)
