#!/usr/bin/env python3
"""
Cuboid Voxelizer Demo Script

This script demonstrates the full conversion pipeline by:
1. Building synthetic test meshes (no external model files needed)
2. Voxelizing them at several scales
3. Merging voxels into cuboids and exporting Bedrock geometry
4. Printing statistics and a greedy vs naive comparison

Run with: python examples/demo.py
"""

import sys
from pathlib import Path
import numpy as np
import time
import trimesh

# Add src to path for development
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from cuboid_voxelizer import CuboidGenerator, Mesh, Voxelizer
from cuboid_voxelizer.greedy_mesh import GreedyMesher, NaiveMesher


def from_trimesh(name: str, tm: trimesh.Trimesh) -> Mesh:
    """Wrap a trimesh object as a pipeline Mesh."""
    return Mesh(
        name=name,
        positions=np.asarray(tm.vertices, dtype=np.float64),
        indices=np.asarray(tm.faces, dtype=np.int64).reshape(-1)
    )


def create_test_sphere(radius: float = 1.0) -> Mesh:
    """Create an icosphere centered one radius above the origin."""
    tm = trimesh.creation.icosphere(subdivisions=3, radius=radius)
    tm.apply_translation([0.0, radius, 0.0])
    return from_trimesh("sphere", tm)


def create_test_character() -> list:
    """
    Create a blocky character from separate part meshes.

    Returns:
        List of meshes, one bone each
    """
    return [
        Mesh.from_box("body", (-0.25, 0.75, -0.125), (0.25, 1.5, 0.125)),
        Mesh.from_box("head", (-0.25, 1.5, -0.25), (0.25, 2.0, 0.25)),
        Mesh.from_box("left_leg", (-0.25, 0.0, -0.125), (0.0, 0.75, 0.125)),
        Mesh.from_box("right_leg", (0.0, 0.0, -0.125), (0.25, 0.75, 0.125)),
    ]


def create_test_column(height: float = 2.0) -> Mesh:
    """Create a cylinder standing on the origin."""
    tm = trimesh.creation.cylinder(radius=0.4, height=height, sections=24)
    # trimesh cylinders are centered on Z; stand it upright along Y
    tm.apply_transform(trimesh.transformations.rotation_matrix(-np.pi / 2, [1, 0, 0]))
    tm.apply_translation([0.0, height / 2, 0.0])
    return from_trimesh("column", tm)


def run_demo():
    """Run the demonstration."""
    print("=" * 60)
    print("Cuboid Voxelizer - Demo")
    print("=" * 60)
    print()

    # Create output directory
    output_dir = Path(__file__).parent / "output"
    output_dir.mkdir(exist_ok=True)

    models = [
        ("sphere", [create_test_sphere()]),
        ("character", create_test_character()),
        ("column", [create_test_column()]),
    ]

    total_start = time.time()

    for name, meshes in models:
        print(f"\n--- Processing: {name} ---")
        print(f"Meshes: {len(meshes)}, triangles: {sum(m.triangle_count for m in meshes)}")

        model_start = time.time()

        print("\nTesting scales:")
        for scale in (4, 8, 16):
            generator = CuboidGenerator(scale=scale, mesh_workers=2)
            generator.load_meshes(meshes)

            start = time.time()
            generator.generate()
            elapsed = time.time() - start

            stats = generator.get_mesh_stats()
            print(f"  scale {scale}:")
            print(f"    Time: {elapsed*1000:.1f}ms")
            print(f"    Voxels: {stats['voxel_count']}, cubes: {stats['cube_count']}")
            print(f"    Cube reduction: {stats['cuboid_reduction_percent']:.1f}%")

        # Export at the default scale
        generator = CuboidGenerator(scale=16)
        generator.load_meshes(meshes).generate()
        output_path = generator.export_geometry(output_dir / f"{name}.geo.json")
        print(f"\n  Saved: {output_path}")

        model_time = time.time() - model_start
        print(f"  Total time: {model_time*1000:.1f}ms")

    total_time = time.time() - total_start

    print("\n" + "=" * 60)
    print(f"Demo complete! Total time: {total_time:.2f}s")
    print(f"Output files in: {output_dir}")
    print("=" * 60)

    return 0


def benchmark_greedy_meshing():
    """Benchmark greedy meshing against one cube per voxel."""
    print("\n--- Greedy Meshing Benchmark ---\n")

    mesh = create_test_sphere()

    for scale in (8, 16, 32, 64):
        voxels = Voxelizer(scale=scale).voxelize(mesh)

        greedy = GreedyMesher()
        start = time.time()
        greedy_cubes = greedy.mesh(voxels)
        greedy_time = time.time() - start

        naive = NaiveMesher()
        start = time.time()
        naive_cubes = naive.mesh(voxels)
        naive_time = time.time() - start

        reduction = (1 - len(greedy_cubes) / len(naive_cubes)) * 100

        print(f"Scale: {scale} ({len(voxels)} voxels)")
        print(f"  Greedy: {greedy_time*1000:.1f}ms, {len(greedy_cubes)} cubes")
        print(f"  Naive:  {naive_time*1000:.1f}ms, {len(naive_cubes)} cubes")
        print(f"  Reduction: {reduction:.1f}%")
        print()


if __name__ == "__main__":
    run_demo()

    # Uncomment to run benchmark
    # benchmark_greedy_meshing()
