"""
Export modules for cuboid-based model formats.

Supported formats:
- Minecraft Bedrock geometry (.geo.json) - Bones of axis-aligned cubes
"""

from .geometry_exporter import GeometryExporter

__all__ = ["GeometryExporter"]
