"""Tests for detour configuration."""

import pytest
from pydantic import ValidationError

from detour.config import DetourSettings, get_detour_settings
from detour.mission.models import CameraAction, WaypointTemplate


class TestDetourSettingsDefaults:
    def test_default_connection(self):
        settings = DetourSettings()
        assert settings.connection_url == "udpin:0.0.0.0:14540"
        assert settings.baud_rate == 57600
        assert settings.heartbeat_timeout_seconds == 30
        assert settings.command_timeout_seconds == 5.0

    def test_default_poll_intervals(self):
        settings = DetourSettings()
        assert settings.health_poll_interval_seconds == 1.0
        assert settings.pause_poll_interval_seconds == 1.0
        assert settings.completion_poll_interval_seconds == 1.0
        assert settings.disarm_poll_interval_seconds == 1.0

    def test_default_pause_behaviour(self):
        settings = DetourSettings()
        assert settings.pause_at_waypoint == 2
        assert settings.pause_hold_seconds == 5.0
        assert settings.disarm_grace_seconds == 2.0

    def test_no_deadlines_by_default(self):
        settings = DetourSettings()
        assert settings.health_timeout_seconds is None
        assert settings.completion_timeout_seconds is None

    def test_default_route(self):
        settings = DetourSettings()
        assert settings.start_latitude == 47.398170327054473
        assert settings.end_longitude == 8.541570
        assert settings.obstacle_latitude == 47.397553
        assert settings.obstacle_buffer_degrees == 0.0002


class TestDetourSettingsFromEnvironment:
    def test_reads_prefixed_variables(self, monkeypatch):
        monkeypatch.setenv("DETOUR_CONNECTION_URL", "tcp:127.0.0.1:5760")
        monkeypatch.setenv("DETOUR_PAUSE_AT_WAYPOINT", "4")
        monkeypatch.setenv("DETOUR_CAMERA_ACTION", "take_photo")

        settings = DetourSettings()

        assert settings.connection_url == "tcp:127.0.0.1:5760"
        assert settings.pause_at_waypoint == 4
        assert settings.camera_action == CameraAction.TAKE_PHOTO

    def test_ignores_unprefixed_variables(self, monkeypatch):
        monkeypatch.setenv("CONNECTION_URL", "tcp:10.0.0.1:5760")
        assert DetourSettings().connection_url == "udpin:0.0.0.0:14540"


class TestDetourSettingsValidation:
    def test_rejects_zero_buffer(self):
        with pytest.raises(ValidationError):
            DetourSettings(obstacle_buffer_degrees=0.0)

    def test_rejects_negative_poll_interval(self):
        with pytest.raises(ValidationError):
            DetourSettings(health_poll_interval_seconds=-1.0)

    def test_rejects_zero_completion_timeout(self):
        with pytest.raises(ValidationError):
            DetourSettings(completion_timeout_seconds=0.0)

    def test_rejects_out_of_range_latitude(self):
        with pytest.raises(ValidationError):
            DetourSettings(start_latitude=91.0)

    def test_rejects_identical_route_endpoints(self):
        with pytest.raises(ValidationError, match="must be different"):
            DetourSettings(
                start_latitude=47.0,
                start_longitude=8.0,
                end_latitude=47.0,
                end_longitude=8.0,
            )

    def test_pause_can_be_disabled(self):
        assert DetourSettings(pause_at_waypoint=None).pause_at_waypoint is None


class TestWaypointTemplate:
    def test_defaults_match_template_defaults(self):
        assert DetourSettings().waypoint_template() == WaypointTemplate()

    def test_carries_configured_values(self):
        template = DetourSettings(
            waypoint_altitude_meters=25.0,
            waypoint_speed_meters_per_second=3.0,
            final_gimbal_yaw_degrees=0.0,
        ).waypoint_template()

        assert template.relative_altitude == 25.0
        assert template.speed == 3.0
        assert template.final_gimbal_yaw == 0.0


class TestGetDetourSettings:
    def test_returns_cached_instance(self):
        assert get_detour_settings() is get_detour_settings()

    def test_returns_settings_instance(self):
        assert isinstance(get_detour_settings(), DetourSettings)
