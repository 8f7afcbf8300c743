"""Tests de validación de settings."""

import pytest
from pydantic import ValidationError as PydanticValidationError

from immomatch.config import Settings


class TestTopKBounds:
    def test_defaults_are_consistent(self):
        settings = Settings(_env_file=None)
        assert settings.match_top_k_min <= settings.match_top_k_default <= settings.match_top_k_max

    def test_inverted_bounds_rejected(self):
        with pytest.raises(PydanticValidationError):
            Settings(_env_file=None, match_top_k_min=20, match_top_k_max=5, match_top_k_default=10)

    def test_default_outside_bounds_rejected(self):
        with pytest.raises(PydanticValidationError):
            Settings(_env_file=None, match_top_k_default=80)
