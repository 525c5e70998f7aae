"""Tests for geometry data models."""

import math

import pytest
from pydantic import ValidationError

from detour.exceptions import GeometryError, PlanningError
from detour.geometry.models import CircleIntersection, Obstacle, Point2D


class TestPoint2D:
    def test_stores_coordinates(self):
        point = Point2D(x=8.54, y=47.39)
        assert point.x == 8.54
        assert point.y == 47.39

    def test_is_frozen(self):
        point = Point2D(x=1.0, y=2.0)
        with pytest.raises(ValidationError):
            point.x = 3.0

    def test_equal_by_value(self):
        assert Point2D(x=1.0, y=2.0) == Point2D(x=1.0, y=2.0)

    def test_rejects_non_numeric(self):
        with pytest.raises(ValidationError):
            Point2D(x="east", y=0.0)


class TestObstacle:
    def test_valid_obstacle(self):
        obstacle = Obstacle(center=Point2D(x=0.0, y=0.0), buffer_radius=0.0002)
        assert obstacle.buffer_radius == 0.0002

    @pytest.mark.parametrize("radius", [0.0, -1.0, math.inf, math.nan])
    def test_invalid_radius_raises_geometry_error(self, radius):
        with pytest.raises(GeometryError) as exc_info:
            Obstacle(center=Point2D(x=0.0, y=0.0), buffer_radius=radius)

        assert exc_info.value.context["field"] == "buffer_radius"

    def test_geometry_error_is_planning_error(self):
        with pytest.raises(PlanningError):
            Obstacle(center=Point2D(x=0.0, y=0.0), buffer_radius=0.0)

    def test_is_frozen(self):
        obstacle = Obstacle(center=Point2D(x=0.0, y=0.0), buffer_radius=1.0)
        with pytest.raises(ValidationError):
            obstacle.buffer_radius = 2.0


class TestCircleIntersection:
    def test_stores_entry_and_exit(self):
        intersection = CircleIntersection(
            entry_point=Point2D(x=-1.0, y=0.0),
            exit_point=Point2D(x=1.0, y=0.0),
        )
        assert intersection.entry_point == Point2D(x=-1.0, y=0.0)
        assert intersection.exit_point == Point2D(x=1.0, y=0.0)
