"""Unit tests for tailor_import.config."""

import pytest

from tailor_import.config import SettingsError, load_settings
from tailor_import.shared import MergePolicy


class TestLoadSettings:
    def test_defaults(self):
        s = load_settings({})
        assert s.db_dsn == ""
        assert s.default_unit == "cm"
        assert s.preview_limit == 10
        assert s.merge_policy is MergePolicy.FILL_MISSING
        assert s.jwt_algorithm == "HS256"

    def test_reads_env(self):
        s = load_settings({
            "TAILOR_DB_DSN": "postgresql://localhost/shop",
            "TAILOR_JWT_SECRET": "s3cret",
            "TAILOR_DEFAULT_UNIT": "IN",
            "TAILOR_PREVIEW_LIMIT": "25",
            "TAILOR_MERGE_POLICY": "latest_wins",
        })
        assert s.db_dsn == "postgresql://localhost/shop"
        assert s.jwt_secret == "s3cret"
        assert s.default_unit == "in"
        assert s.preview_limit == 25
        assert s.merge_policy is MergePolicy.LATEST_WINS

    @pytest.mark.parametrize("env", [
        {"TAILOR_DEFAULT_UNIT": "mm"},
        {"TAILOR_PREVIEW_LIMIT": "ten"},
        {"TAILOR_PREVIEW_LIMIT": "0"},
        {"TAILOR_MERGE_POLICY": "always"},
    ])
    def test_rejects_bad_values(self, env):
        with pytest.raises(SettingsError):
            load_settings(env)
