"""
Bedrock Geometry Exporter (.geo.json)

Minecraft Bedrock entity/block models describe geometry as bones, each a
named group of axis-aligned cubes with a pivot. This exporter writes the
pipeline's groups in that schema:

{
  "format_version": "1.12.0",
  "minecraft:geometry": [{
    "description": {identifier, texture size, visible bounds},
    "bones": [{"name", "pivot", "cubes": [{"origin", "size", "uv"}]}]
  }]
}

Cube coordinates are voxel units; texture placement is left at (0, 0).
"""

from pathlib import Path
from typing import Any, Dict, List, Sequence, Tuple, Union
import json

from ..pipeline import Group


# Schema constants
FORMAT_VERSION = "1.12.0"
GEOMETRY_KEY = "minecraft:geometry"
IDENTIFIER_PREFIX = "geometry."


class GeometryExporter:
    """
    Export cuboid groups to a Bedrock geometry JSON file.
    """

    def __init__(
        self,
        texture_width: int = 64,
        texture_height: int = 64,
        visible_bounds_width: int = 4,
        visible_bounds_height: int = 4,
        visible_bounds_offset: Tuple[int, int, int] = (0, 1, 0),
        indent: int = 2
    ):
        """
        Initialize the exporter.

        Args:
            texture_width: Declared texture width in pixels
            texture_height: Declared texture height in pixels
            visible_bounds_width: Culling bounds width in blocks
            visible_bounds_height: Culling bounds height in blocks
            visible_bounds_offset: Culling bounds offset
            indent: JSON indentation (None for compact output)
        """
        self.texture_width = texture_width
        self.texture_height = texture_height
        self.visible_bounds_width = visible_bounds_width
        self.visible_bounds_height = visible_bounds_height
        self.visible_bounds_offset = visible_bounds_offset
        self.indent = indent

    @staticmethod
    def identifier_for(model_name: str) -> str:
        """Build the geometry identifier for a model name."""
        if model_name.startswith(IDENTIFIER_PREFIX):
            return model_name
        return f"{IDENTIFIER_PREFIX}{model_name}"

    def build(self, groups: Sequence[Group], model_name: str) -> Dict[str, Any]:
        """
        Build the geometry document.

        Args:
            groups: Bones to export
            model_name: Name used for the geometry identifier

        Returns:
            JSON-serializable dictionary
        """
        if not groups:
            raise ValueError("Cannot export empty geometry")

        bones: List[Dict[str, Any]] = [group.to_dict() for group in groups]

        return {
            "format_version": FORMAT_VERSION,
            GEOMETRY_KEY: [
                {
                    "description": {
                        "identifier": self.identifier_for(model_name),
                        "texture_width": self.texture_width,
                        "texture_height": self.texture_height,
                        "visible_bounds_width": self.visible_bounds_width,
                        "visible_bounds_height": self.visible_bounds_height,
                        "visible_bounds_offset": list(self.visible_bounds_offset),
                    },
                    "bones": bones,
                }
            ],
        }

    def export(
        self,
        groups: Sequence[Group],
        output_path: Union[str, Path],
        model_name: str = "model"
    ) -> Path:
        """
        Write groups to a .geo.json file.

        Args:
            groups: Bones to export
            output_path: Output file path
            model_name: Name used for the geometry identifier

        Returns:
            The written path
        """
        output_path = Path(output_path)
        document = self.build(groups, model_name)

        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(document, f, indent=self.indent, ensure_ascii=False)
            f.write("\n")

        return output_path
