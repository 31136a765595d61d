# tests/test_version.py
import pytest

import hospital_api
from hospital_api.version import (
    get_package_version,
    get_token_claims_version,
    is_token_claims_compatible,
)


def test_package_version_exposed():
    assert hospital_api.__version__ == get_package_version() == "0.1.0"


def test_token_claims_version():
    assert get_token_claims_version() == "1.0"


@pytest.mark.parametrize(
    "version,expected",
    [
        ("1.0", True),
        ("1.7", True),
        ("2.0", False),
        ("0.9", False),
        ("1", False),
        ("1.0.0", False),
        ("", False),
        (None, False),
    ],
)
def test_is_token_claims_compatible(version, expected):
    assert is_token_claims_compatible(version) is expected
