"""
Unit tests for intersection, voxelization, meshing and the pipeline.
"""

import sys
from pathlib import Path
import numpy as np
import unittest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import trimesh

from cuboid_voxelizer.errors import InvalidMeshError, ResourceLimitError
from cuboid_voxelizer.intersect import ContactRule, triangle_box_intersect
from cuboid_voxelizer.voxelizer import (
    Mesh, VoxelSet, Voxelizer, estimate_candidate_cells, validate_scale
)
from cuboid_voxelizer.greedy_mesh import Cuboid, GreedyMesher, NaiveMesher
from cuboid_voxelizer.pipeline import PipelineConfig, VoxelPipeline


def covered_cells(cuboids):
    """Collect cells of all cuboids, keeping duplicates."""
    cells = []
    for cuboid in cuboids:
        cells.extend(cuboid.cells())
    return cells


def sphere_mesh(subdivisions: int = 3) -> Mesh:
    """Unit icosphere centered at the origin."""
    sphere = trimesh.creation.icosphere(subdivisions=subdivisions, radius=1.0)
    return Mesh("sphere", np.asarray(sphere.vertices), np.asarray(sphere.faces).reshape(-1))


class TestTriangleBoxIntersect(unittest.TestCase):
    """Tests for the SAT predicate."""

    CENTER = (0.0, 0.0, 0.0)

    def test_triangle_through_box(self):
        """Triangle crossing the box center intersects."""
        tri = ((-1, -1, 0), (1, -1, 0), (0, 1, 0))
        for rule in ContactRule:
            assert triangle_box_intersect(*tri, self.CENTER, 0.5, rule)

    def test_far_triangle(self):
        """Triangle outside the box on a face axis."""
        tri = ((4, -1, 0), (6, -1, 0), (5, 1, 0))
        assert not triangle_box_intersect(*tri, self.CENTER, 0.5)

    def test_normal_axis_separates(self):
        """Plane x + y + z = 2 passes the box corner without touching."""
        tri = ((2, 0, 0), (0, 2, 0), (0, 0, 2))
        assert not triangle_box_intersect(*tri, self.CENTER, 0.5)

    def test_edge_cross_axis_separates(self):
        """Bounding boxes and plane overlap, only an edge axis separates."""
        tri = ((0.4, 1.0, 0.0), (1.0, 0.4, 0.0), (1.0, 1.0, 0.0))
        assert not triangle_box_intersect(*tri, self.CENTER, 0.5)
        assert not triangle_box_intersect(*tri, self.CENTER, 0.5, ContactRule.BEHIND)

    def test_coplanar_face_closed(self):
        """Closed box: a triangle on the top face touches it."""
        tri = ((-1, -1, 0.5), (1, -1, 0.5), (0, 1, 0.5))
        assert triangle_box_intersect(*tri, self.CENTER, 0.5, ContactRule.CLOSED)
        reversed_tri = (tri[0], tri[2], tri[1])
        assert triangle_box_intersect(*reversed_tri, self.CENTER, 0.5, ContactRule.CLOSED)

    def test_coplanar_face_behind(self):
        """Behind rule: the box owns the face only when below its normal."""
        tri = ((-1, -1, 0.5), (1, -1, 0.5), (0, 1, 0.5))  # Normal +Z
        assert triangle_box_intersect(*tri, self.CENTER, 0.5, ContactRule.BEHIND)
        reversed_tri = (tri[0], tri[2], tri[1])  # Normal -Z
        assert not triangle_box_intersect(*reversed_tri, self.CENTER, 0.5, ContactRule.BEHIND)

    def test_degenerate_point(self):
        """Zero-area triangle does not crash and behaves like a point."""
        inside = ((0.1, 0.1, 0.1),) * 3
        corner = ((0.5, 0.5, 0.5),) * 3
        assert triangle_box_intersect(*inside, self.CENTER, 0.5)
        assert triangle_box_intersect(*inside, self.CENTER, 0.5, ContactRule.BEHIND)
        assert triangle_box_intersect(*corner, self.CENTER, 0.5, ContactRule.CLOSED)
        assert not triangle_box_intersect(*corner, self.CENTER, 0.5, ContactRule.BEHIND)


class TestMesh(unittest.TestCase):
    """Tests for Mesh construction and validation."""

    def test_flat_positions(self):
        """Flat buffers are reshaped to (N, 3)."""
        mesh = Mesh("flat", [0, 0, 0, 1, 0, 0, 0, 1, 0], [0, 1, 2])
        assert mesh.vertex_count == 3
        assert mesh.triangle_count == 1

    def test_ragged_positions(self):
        """Position buffers must hold whole points."""
        with self.assertRaises(InvalidMeshError):
            Mesh("bad", [0, 0, 0, 1], [0, 0, 0])

    def test_index_out_of_range(self):
        """Indices must reference existing vertices."""
        mesh = Mesh("bad", np.zeros((3, 3)), [0, 1, 3])
        with self.assertRaises(InvalidMeshError):
            Voxelizer().voxelize(mesh)

    def test_ragged_indices(self):
        """Index buffers must hold whole triangles."""
        mesh = Mesh("bad", np.zeros((3, 3)), [0, 1, 2, 0])
        with self.assertRaises(InvalidMeshError):
            mesh.validate()

    def test_non_finite_position(self):
        """NaN positions are rejected."""
        mesh = Mesh("bad", [[0, 0, 0], [1, 0, 0], [np.nan, 1, 0]], [0, 1, 2])
        with self.assertRaises(InvalidMeshError):
            mesh.validate()

    def test_box_winding_outward(self):
        """Every box triangle normal points away from the center."""
        mesh = Mesh.from_box("box", (0, 0, 0), (2, 1, 1))
        center = mesh.positions.mean(axis=0)
        for a, b, c in mesh.positions[mesh.triangles]:
            normal = np.cross(b - a, c - b)
            assert np.dot(normal, a - center) > 0


class TestVoxelizer(unittest.TestCase):
    """Tests for surface voxelization."""

    def test_unit_cube(self):
        """Unit cube at scale 1 is exactly one voxel."""
        voxels = Voxelizer(scale=1).voxelize(Mesh.from_box("cube", (0, 0, 0), (1, 1, 1)))
        assert voxels.as_set() == {(0, 0, 0)}

    def test_elongated_box(self):
        """2x1x1 box yields two voxels along X."""
        voxels = Voxelizer(scale=1).voxelize(Mesh.from_box("bar", (0, 0, 0), (2, 1, 1)))
        assert voxels.as_set() == {(0, 0, 0), (1, 0, 0)}

    def test_negative_coordinates(self):
        """Cells below the origin floor correctly."""
        voxels = Voxelizer(scale=1).voxelize(Mesh.from_box("neg", (-1, -1, -1), (0, 0, 0)))
        assert voxels.as_set() == {(-1, -1, -1)}

    def test_cube_shell_counts(self):
        """Surface voxels of the unit cube at increasing scale."""
        cube = Mesh.from_box("cube", (0, 0, 0), (1, 1, 1))
        assert len(Voxelizer(scale=2).voxelize(cube)) == 8
        assert len(Voxelizer(scale=4).voxelize(cube)) == 4 ** 3 - 2 ** 3

    def test_closed_contact_rule(self):
        """Closed boxes also claim the cells touching the cube from outside."""
        cube = Mesh.from_box("cube", (0, 0, 0), (1, 1, 1))
        voxels = Voxelizer(scale=1, contact_rule=ContactRule.CLOSED).voxelize(cube)
        assert len(voxels) == 8
        assert (1, 1, 1) in voxels

    def test_empty_mesh(self):
        """A mesh without triangles has no voxels."""
        voxels = Voxelizer(scale=1).voxelize(Mesh("empty", np.zeros((0, 3))))
        assert len(voxels) == 0

    def test_degenerate_triangle(self):
        """Collinear triangle contributes at most its bounding cell."""
        mesh = Mesh("sliver", [[0.2, 0.5, 0.5], [0.8, 0.5, 0.5], [0.5, 0.5, 0.5]], [0, 1, 2])
        voxels = Voxelizer(scale=1).voxelize(mesh)
        assert voxels.as_set() == {(0, 0, 0)}

    def test_chunking_is_invisible(self):
        """Chunk size and worker count never change the voxel set."""
        sphere = sphere_mesh(2)
        serial = Voxelizer(scale=4).voxelize(sphere)
        parallel = Voxelizer(scale=4, workers=3, chunk_size=7).voxelize(sphere)
        assert len(serial) > 0
        assert serial == parallel

    def test_scaling(self):
        """Doubling the scale grows a surface by roughly the area factor."""
        sphere = sphere_mesh(3)
        coarse = len(Voxelizer(scale=8).voxelize(sphere))
        fine = len(Voxelizer(scale=16).voxelize(sphere))
        assert 3.0 < fine / coarse < 5.0

    def test_candidate_estimate(self):
        """Candidate cell counts for the unit cube."""
        cube = Mesh.from_box("cube", (0, 0, 0), (1, 1, 1))
        assert estimate_candidate_cells(cube, 1.0, ContactRule.CLOSED) == 12 * 2 * 2 * 1
        assert estimate_candidate_cells(cube, 1.0, ContactRule.BEHIND) == 12 * 3 * 3 * 2
        assert estimate_candidate_cells(Mesh("empty", np.zeros((0, 3))), 1.0) == 0

    def test_invalid_scale(self):
        """Scale must be positive and finite."""
        for bad in (0, -1, float("inf"), float("nan"), "abc"):
            with self.assertRaises(ValueError):
                validate_scale(bad)
        with self.assertRaises(ValueError):
            Voxelizer(scale=0)


class TestGreedyMesher(unittest.TestCase):
    """Tests for greedy cuboid meshing."""

    def test_empty_set(self):
        """Empty input gives no cuboids."""
        assert GreedyMesher().mesh(VoxelSet()) == []

    def test_single_voxel(self):
        """A single voxel is a unit cuboid."""
        cuboids = GreedyMesher().mesh(VoxelSet.from_cells([(3, -2, 5)]))
        assert cuboids == [Cuboid((3, -2, 5), (1, 1, 1), (0, 0))]

    def test_solid_block(self):
        """A full block merges into one cuboid."""
        cells = [(x, y, z) for x in range(2) for y in range(3) for z in range(4)]
        cuboids = GreedyMesher().mesh(VoxelSet.from_cells(cells))
        assert cuboids == [Cuboid((0, 0, 0), (2, 3, 4))]

    def test_width_before_depth(self):
        """X runs are grown first; an incomplete Z row stops depth."""
        cells = [(0, 0, 0), (1, 0, 0), (0, 0, 1)]
        cuboids = GreedyMesher().mesh(VoxelSet.from_cells(cells))
        assert cuboids == [
            Cuboid((0, 0, 0), (2, 1, 1)),
            Cuboid((0, 0, 1), (1, 1, 1)),
        ]

    def test_height_growth(self):
        """Height grows over full rectangles only."""
        cells = [(0, 0, 0), (0, 1, 0), (1, 1, 0)]
        cuboids = GreedyMesher().mesh(VoxelSet.from_cells(cells))
        assert cuboids == [
            Cuboid((0, 0, 0), (1, 2, 1)),
            Cuboid((1, 1, 0), (1, 1, 1)),
        ]

    def test_partition_law(self):
        """Cuboids cover the set exactly once and deterministically."""
        rng = np.random.default_rng(7)
        cells = rng.integers(-3, 5, size=(300, 3))
        voxels = VoxelSet(cells)

        cuboids = GreedyMesher().mesh(voxels)
        covered = covered_cells(cuboids)

        assert len(covered) == len(voxels)
        assert set(covered) == voxels.as_set()
        assert sum(c.volume for c in cuboids) == len(voxels)
        assert len(cuboids) <= len(voxels)
        assert GreedyMesher().mesh(VoxelSet(cells[::-1])) == cuboids

    def test_far_apart_cells(self):
        """Sparse sets are meshed without touching their bounding volume."""
        far = 4_000_000
        cuboids = GreedyMesher().mesh(VoxelSet.from_cells([(far, far, far), (0, 0, 0)]))
        assert cuboids == [
            Cuboid((0, 0, 0), (1, 1, 1)),
            Cuboid((far, far, far), (1, 1, 1)),
        ]

    def test_naive_mesher(self):
        """Naive meshing emits one cuboid per voxel."""
        cells = [(x, 0, 0) for x in range(5)]
        cuboids = NaiveMesher().mesh(VoxelSet.from_cells(cells))
        assert len(cuboids) == 5
        assert all(c.size == (1, 1, 1) for c in cuboids)

    def test_voxelized_partition(self):
        """End to end: the sphere's voxels are partitioned exactly."""
        voxels = Voxelizer(scale=6).voxelize(sphere_mesh(2))
        cuboids = GreedyMesher().mesh(voxels)
        covered = covered_cells(cuboids)
        assert len(covered) == len(voxels)
        assert set(covered) == voxels.as_set()
        assert len(cuboids) < len(voxels)


class TestVoxelPipeline(unittest.TestCase):
    """Tests for the multi-mesh pipeline."""

    def test_groups_and_totals(self):
        """Empty meshes are skipped, totals are summed."""
        meshes = [
            Mesh.from_box("a", (0, 0, 0), (1, 1, 1)),
            Mesh("empty", np.zeros((0, 3))),
            Mesh.from_box("b", (5, 0, 0), (7, 1, 1)),
        ]
        result = VoxelPipeline(scale=1, mesh_workers=4).run(meshes)

        assert [g.name for g in result.groups] == ["a", "b"]
        assert result.total_voxels == 3
        assert result.total_cuboids == 2
        assert result.groups[1].cuboids == [Cuboid((5, 0, 0), (2, 1, 1))]
        assert result.groups[0].pivot == (0, 0, 0)

    def test_order_preserved(self):
        """Groups come back in input order with parallel workers."""
        meshes = [
            Mesh.from_box(f"m{i}", (0, 0, 0), (1 + i % 3, 1, 1))
            for i in range(8)
        ]
        result = VoxelPipeline(scale=2, mesh_workers=4).run(meshes)
        assert [g.name for g in result.groups] == [f"m{i}" for i in range(8)]

    def test_no_meshes(self):
        """No input gives an empty result."""
        result = VoxelPipeline(scale=1).run([])
        assert result.is_empty
        assert result.total_voxels == 0
        assert result.total_cuboids == 0

    def test_far_apart_triangles(self):
        """Two tiny triangles thousands of cells apart give two cuboids."""
        tri = np.array([[0.1, 0.1, 0.1], [0.2, 0.1, 0.1], [0.1, 0.2, 0.1]])
        mesh = Mesh(
            "spread",
            np.vstack([tri, tri + 4000.0]),
            np.array([0, 1, 2, 3, 4, 5])
        )
        result = VoxelPipeline(scale=1, max_candidate_cells=1000).run([mesh])

        assert result.total_voxels == 2
        assert result.groups[0].cuboids == [
            Cuboid((0, 0, 0), (1, 1, 1)),
            Cuboid((4000, 4000, 4000), (1, 1, 1)),
        ]

    def test_resource_limit(self):
        """The candidate cell guard raises before rasterizing."""
        cube = Mesh.from_box("cube", (0, 0, 0), (1, 1, 1))
        with self.assertRaises(ResourceLimitError):
            VoxelPipeline(scale=1, max_candidate_cells=100).run([cube])
        result = VoxelPipeline(scale=1, max_candidate_cells=1000).run([cube])
        assert result.total_voxels == 1

    def test_naive_mesher(self):
        """Pipeline accepts another mesher."""
        cube = Mesh.from_box("cube", (0, 0, 0), (1, 1, 1))
        result = VoxelPipeline(PipelineConfig(scale=2), mesher=NaiveMesher()).run([cube])
        assert result.total_voxels == 8
        assert result.total_cuboids == 8

    def test_config_validation(self):
        """Bad settings are rejected."""
        with self.assertRaises(ValueError):
            PipelineConfig(scale=0)
        with self.assertRaises(ValueError):
            PipelineConfig(mesh_workers=0)
        with self.assertRaises(TypeError):
            VoxelPipeline(PipelineConfig(), scale=2)

    def test_group_dict(self):
        """Groups serialize to bone entries."""
        cube = Mesh.from_box("cube", (0, 0, 0), (1, 1, 1))
        group = VoxelPipeline(scale=1).run([cube]).groups[0]
        assert group.to_dict() == {
            "name": "cube",
            "pivot": [0, 0, 0],
            "cubes": [{"origin": [0, 0, 0], "size": [1, 1, 1], "uv": [0, 0]}],
        }


if __name__ == "__main__":
    unittest.main(verbosity=2)
