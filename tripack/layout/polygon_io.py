"""
Polygon input and packing result output.

Polygon files are plain text: whitespace-separated ``x y`` coordinate pairs,
one vertex per line or free-flowing. ``#`` starts a comment. The ring is
implicitly closed.

Example:
```
# 10 x 10 square
0 0
10 0
10 10
0 10
```

Results are written as JSON, or YAML when the target ends in ``.yaml`` or
``.yml``, with tile positions in the polygon's units.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Union

import yaml

from ..errors import InvalidPolygonError
from ..geometry.vectors import Point

logger = logging.getLogger(__name__)

YAML_SUFFIXES = (".yaml", ".yml")


def parse_polygon(content: str) -> List[Point]:
    """Parse polygon text into a vertex list.

    Raises:
        InvalidPolygonError: on a non-numeric token or an odd number of
            coordinates
    """
    values: List[float] = []
    for line_number, line in enumerate(content.splitlines(), start=1):
        line = line.split("#", 1)[0]
        for token in line.replace(",", " ").split():
            try:
                values.append(float(token))
            except ValueError:
                raise InvalidPolygonError(
                    f"Line {line_number}: not a number: {token!r}"
                ) from None

    if len(values) % 2:
        raise InvalidPolygonError(
            f"Polygon has an odd number of coordinates ({len(values)})"
        )
    return [(values[i], values[i + 1]) for i in range(0, len(values), 2)]


def read_polygon(path: Union[str, Path]) -> List[Point]:
    """Read polygon vertices from a text file.

    Raises:
        FileNotFoundError: if the file does not exist
        InvalidPolygonError: on malformed content
    """
    path = Path(path)
    vertices = parse_polygon(path.read_text())
    logger.debug("Read %d vertices from %s", len(vertices), path)
    return vertices


def write_result(data: Dict[str, Any], path: Union[str, Path]) -> Path:
    """Write a result mapping (see PackingResult.to_dict) to disk.

    The format follows the file suffix: YAML for .yaml/.yml, JSON otherwise.
    """
    path = Path(path)
    if path.suffix.lower() in YAML_SUFFIXES:
        content = yaml.dump(data, default_flow_style=False, sort_keys=False)
    else:
        content = json.dumps(data, indent=2) + "\n"
    path.write_text(content)
    logger.info("Saved packing result: %s (%d tiles)", path, len(data.get("tiles", [])))
    return path


def read_result(path: Union[str, Path]) -> Dict[str, Any]:
    """Load a result file written by write_result()."""
    path = Path(path)
    content = path.read_text()
    if path.suffix.lower() in YAML_SUFFIXES:
        return yaml.safe_load(content) or {}
    return json.loads(content)
