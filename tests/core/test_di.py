"""Tests for rubricate.core.di."""

from __future__ import annotations

import types
from unittest.mock import MagicMock

import pytest

from rubricate.core.di import PackageWiringLoader


class TestPackageWiringLoader(object):
    """Tests for PackageWiringLoader.wire_module()."""

    @pytest.fixture
    def loader(self) -> tuple[PackageWiringLoader, MagicMock]:
        container = MagicMock(name="container")
        loader = PackageWiringLoader()
        loader.containers["rubricate"] = [container]
        return loader, container

    def test_wires_package_modules_at_trace_level(
        self,
        loader: tuple[PackageWiringLoader, MagicMock],
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        wiring, container = loader
        module = types.ModuleType("rubricate.service.example")
        caplog.set_level(5, logger="rubricate.core.di")

        wiring.wire_module(module)

        container.wire.assert_called_once_with(modules=[module])
        records = [r for r in caplog.records if r.getMessage() == "wiring module"]
        assert [r.wired_module for r in records] == ["rubricate.service.example"]

    def test_ignores_other_packages(self, loader: tuple[PackageWiringLoader, MagicMock]) -> None:
        wiring, container = loader

        wiring.wire_module(types.ModuleType("rubricatex.other"))
        wiring.wire_module(types.ModuleType("sqlalchemy.orm"))

        container.wire.assert_not_called()
