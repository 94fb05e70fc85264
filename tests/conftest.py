from __future__ import annotations

import os

import pytest

from chlu_gateway.config import reset_config_cache


@pytest.fixture(autouse=True)
def _isolated_config(monkeypatch, tmp_path):
    for name in list(os.environ):
        if name.startswith(("CHLU_", "IPFS_")):
            monkeypatch.delenv(name)
    monkeypatch.setenv("CHLU_GATEWAY_DIRECTORY", str(tmp_path / "chlu-query"))
    reset_config_cache()
    yield
    reset_config_cache()
