"""Tests for the straight skeleton."""

import pytest

from py_citygen.core.geometry import Point2D, polygon_area, signed_area
from py_citygen.core.straight_skeleton import SkeletonError, build_straight_skeleton


def points(*coords):
    return [Point2D(x, z) for x, z in coords]


def face_areas(skeleton):
    return {face.edge_index: polygon_area(face.polygon) for face in skeleton.faces}


class TestConvexPolygons:
    """Test skeletons of convex polygons."""

    def test_square_faces_are_triangles(self):
        skeleton = build_straight_skeleton(points((0, 0), (10, 0), (10, 10), (0, 10)))

        assert len(skeleton.faces) == 4
        for face in skeleton.faces:
            assert len(face.polygon) == 3
            assert polygon_area(face.polygon) == pytest.approx(25.0)

    def test_rectangle_skeleton(self):
        polygon = points((5, 5), (95, 5), (95, 55), (5, 55))
        skeleton = build_straight_skeleton(polygon)

        areas = face_areas(skeleton)
        assert areas == {
            0: pytest.approx(1625.0),
            1: pytest.approx(625.0),
            2: pytest.approx(1625.0),
            3: pytest.approx(625.0),
        }
        ridge = [
            arc for arc in skeleton.arcs
            if {(round(arc.start.x, 6), round(arc.start.z, 6)), (round(arc.end.x, 6), round(arc.end.z, 6))}
            == {(30.0, 30.0), (70.0, 30.0)}
        ]
        assert len(ridge) == 1

    def test_triangle(self):
        skeleton = build_straight_skeleton(points((0, 0), (10, 0), (0, 10)))
        assert len(skeleton.faces) == 3
        assert sum(face_areas(skeleton).values()) == pytest.approx(50.0)

    def test_faces_keep_source_edges(self):
        polygon = points((0, 0), (40, 0), (50, 30), (10, 40))
        skeleton = build_straight_skeleton(polygon)

        assert len(skeleton.faces) == 4
        for face in skeleton.faces:
            assert face.polygon[0] == polygon[face.edge_index]
            assert face.polygon[1] == polygon[(face.edge_index + 1) % 4]
            assert signed_area(face.polygon) > 0
        assert sum(face_areas(skeleton).values()) == pytest.approx(polygon_area(polygon))


class TestReflexPolygons:
    """Test skeletons with split events."""

    def test_l_shape(self):
        polygon = points((0, 0), (20, 0), (20, 10), (10, 10), (10, 20), (0, 20))
        skeleton = build_straight_skeleton(polygon)

        areas = face_areas(skeleton)
        assert len(areas) == 6
        assert areas[0] == pytest.approx(75.0)
        assert areas[2] == pytest.approx(50.0)
        assert sum(areas.values()) == pytest.approx(300.0)


class TestInputHandling:
    """Test normalisation and rejection of bad input."""

    def test_clockwise_input_is_normalised(self):
        skeleton = build_straight_skeleton(points((0, 10), (10, 10), (10, 0), (0, 0)))
        assert signed_area(skeleton.polygon) > 0
        assert len(skeleton.faces) == 4

    def test_too_few_vertices(self):
        with pytest.raises(SkeletonError):
            build_straight_skeleton(points((0, 0), (1, 0)))

    def test_self_intersecting(self):
        with pytest.raises(SkeletonError):
            build_straight_skeleton(points((0, 0), (10, 10), (10, 0), (0, 10)))

    def test_zero_area(self):
        with pytest.raises(SkeletonError):
            build_straight_skeleton(points((0, 0), (5, 0), (10, 0)))

    def test_zero_length_edge(self):
        with pytest.raises(SkeletonError):
            build_straight_skeleton(points((0, 0), (0, 0), (10, 0), (0, 10)))
