"""Shared test fixtures for Inkwell tests."""

import os
from pathlib import Path

import pytest

from inkwell.config import AnalysisConfig
from inkwell.syntax.treesitter_parser import RustParser

FIXTURES_DIR = Path(__file__).parent / "fixtures"


@pytest.fixture(autouse=True)
def _isolated_config(monkeypatch, tmp_path):
    """Keep user config files and INKWELL_* variables out of every test."""
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    for key in list(os.environ):
        if key.startswith("INKWELL_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture(scope="session")
def parser():
    """One parser for the whole session."""
    return RustParser()


@pytest.fixture
def config():
    """Default configuration."""
    return AnalysisConfig()


@pytest.fixture
def token_path():
    """ERC-20 style token using sol_storage! and #[external]."""
    return FIXTURES_DIR / "token.rs"


@pytest.fixture
def vault_path():
    """Vault using #[storage] structs, #[public] and vm() host calls."""
    return FIXTURES_DIR / "vault.rs"


@pytest.fixture
def token_source(token_path):
    return token_path.read_text(encoding="utf-8")


@pytest.fixture
def vault_source(vault_path):
    return vault_path.read_text(encoding="utf-8")


@pytest.fixture
def make_contract():
    """Wrap method definitions in a minimal #[public] contract."""

    def _make(body: str, storage: str = "") -> str:
        return (
            "#[storage]\n"
            "#[entrypoint]\n"
            "pub struct Fixture {\n"
            f"{storage}"
            "}\n"
            "\n"
            "#[public]\n"
            "impl Fixture {\n"
            f"{body}"
            "}\n"
        )

    return _make


@pytest.fixture
def line_of():
    """1-based line of the first occurrence of a needle in source."""

    def _line_of(source: str, needle: str) -> int:
        for number, text in enumerate(source.splitlines(), start=1):
            if needle in text:
                return number
        raise AssertionError(f"{needle!r} not in source")

    return _line_of
