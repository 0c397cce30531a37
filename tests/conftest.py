"""Shared fixtures for the Garnet compiler tests."""
from __future__ import annotations

from pathlib import Path

import pytest

from garnet_lang.backend.interning import PersistentTable
from garnet_lang.compiler.driver import CompilationDriver, UnitState
from garnet_lang.backend.codegen_js import generate_unit
from garnet_lang.internals.parser import parse_source


@pytest.fixture
def table() -> PersistentTable:
    return PersistentTable()


@pytest.fixture
def driver(table) -> CompilationDriver:
    return CompilationDriver(table)


@pytest.fixture
def raw_js():
    """Generate the unwrapped code of a snippet against a fresh table."""
    def generate(src: str, file_id: str = "t.rb", core: bool = False, table=None) -> str:
        table = table if table is not None else PersistentTable()
        unit = UnitState(file_id=file_id, scratch=table.new_scratch(file_id), core=core)
        return generate_unit(parse_source(src, file_id), unit)
    return generate


@pytest.fixture
def project(tmp_path, monkeypatch):
    """A scratch project directory used as the effective cwd."""
    monkeypatch.setenv("GARNET_CWD", str(tmp_path))
    monkeypatch.setenv("NO_COLOR", "1")

    def write(name: str, text: str) -> Path:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
        return path

    write.root = tmp_path
    return write
