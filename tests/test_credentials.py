from __future__ import annotations

from collections import Counter
from pathlib import Path

import pytest

from relay.credentials import CredentialPool, load_credentials, mask
from relay.errors import ConfigurationError


def test_explicit_credential_is_returned_unchanged() -> None:
    pool = CredentialPool(["a", "b"])
    for _ in range(20):
        assert pool.select("pinned-cookie") == "pinned-cookie"


def test_empty_explicit_falls_back_to_pool() -> None:
    pool = CredentialPool(["only"])
    assert pool.select("") == "only"
    assert pool.select(None) == "only"


def test_random_selection_covers_pool() -> None:
    pool = CredentialPool(["a", "b", "c"])
    seen = Counter(pool.select() for _ in range(500))
    assert set(seen) == {"a", "b", "c"}


def test_empty_pool_is_configuration_error() -> None:
    with pytest.raises(ConfigurationError):
        CredentialPool([])


def test_load_credentials_reads_cookie_list(tmp_path: Path) -> None:
    path = tmp_path / "cookies.yaml"
    path.write_text("cookies:\n  - first\n  - ''\n  - second\n", encoding="utf-8")

    assert load_credentials(path) == ["first", "second"]


def test_load_credentials_missing_file(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError, match="not found"):
        load_credentials(tmp_path / "absent.yaml")


def test_load_credentials_requires_cookies_key(tmp_path: Path) -> None:
    path = tmp_path / "cookies.yaml"
    path.write_text("tokens: [a]\n", encoding="utf-8")

    with pytest.raises(ConfigurationError, match="cookies"):
        load_credentials(path)


def test_mask_hides_most_of_the_credential() -> None:
    assert mask("abcdefghijklmnop") == "abcdef***"
    assert mask("short") == "***"
