"""
Tests for settings parsing and CORS origins.
"""
import pytest

from signdesk.config import DEV_CORS_ORIGINS, Settings, get_cors_origins


class TestAllowedOrigins:
    """ALLOWED_ORIGINS accepts JSON lists and delimited strings."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            ('["https://a.example.com", "https://b.example.com"]', ["https://a.example.com", "https://b.example.com"]),
            ("https://a.example.com,https://b.example.com", ["https://a.example.com", "https://b.example.com"]),
            ("https://a.example.com; https://b.example.com", ["https://a.example.com", "https://b.example.com"]),
            ("", []),
            ("  ", []),
        ],
    )
    def test_parse(self, value, expected):
        assert Settings(allowed_origins=value).allowed_origins == expected

    def test_malformed_json_falls_back_to_delimiters(self):
        assert Settings(allowed_origins="[https://a.example.com").allowed_origins == ["[https://a.example.com"]


class TestBounds:

    def test_defaults(self):
        settings = Settings()
        assert (settings.container_width, settings.container_height) == (800, 1000)
        assert (settings.zoom_min, settings.zoom_max, settings.zoom_step) == (0.5, 3.0, 0.25)
        assert (settings.default_placement_width, settings.default_placement_height) == (250.0, 100.0)

    def test_inverted_zoom_bounds_swapped(self):
        settings = Settings(zoom_min=4.0, zoom_max=0.25)
        assert (settings.zoom_min, settings.zoom_max) == (0.25, 4.0)

    def test_viewer_limits(self):
        limits = Settings().viewer_limits()
        assert limits["min_placement_width"] == 50.0
        assert limits["handle_size"] == 12.0


class TestCorsOrigins:

    def test_development_includes_dev_origins(self):
        origins = get_cors_origins(Settings(environment="development", allowed_origins="https://app.example.com"))
        assert "https://app.example.com" in origins
        assert set(DEV_CORS_ORIGINS) <= set(origins)

    def test_production_only_configured(self):
        origins = get_cors_origins(Settings(environment="production", allowed_origins="https://app.example.com"))
        assert origins == ["https://app.example.com"]
