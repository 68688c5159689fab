import os

import pytest


@pytest.fixture(autouse=True)
def clean_storefront_env(monkeypatch) -> None:
    for key in list(os.environ):
        if key.startswith("STOREFRONT_"):
            monkeypatch.delenv(key, raising=False)
