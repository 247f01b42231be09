"""
Plot persistence
Stores a Plot's nested structure with every geometry as a GeoJSON string.
A geometry that fails to parse decodes to None instead of failing the load.
"""

import json
import os
from typing import Any, Dict, Iterator, List, Optional

from loguru import logger
from pydantic import ValidationError

from .errors import PlotNotFoundError
from .models import GeoJSONLineString, GeoJSONPoint, GeoJSONPolygon, Plot

# Expected GeoJSON model per geometry key
GEOMETRY_KEYS = {
    "geometry": GeoJSONPolygon,
    "centroid": GeoJSONPoint,
    "position": GeoJSONPoint,
    "centerline": GeoJSONLineString,
}
GEOMETRY_LIST_KEYS = {
    "cores": GeoJSONPolygon,
    "entrances": GeoJSONPoint,
}


def _encode_geometry(value: Any) -> Any:
    if isinstance(value, dict) and "coordinates" in value:
        return json.dumps(value, separators=(",", ":"))
    return value


def _decode_geometry(value: Any, model, path: str) -> Optional[Dict[str, Any]]:
    if value is None:
        return None
    if isinstance(value, dict):
        data = value
    else:
        try:
            data = json.loads(value)
        except (TypeError, ValueError) as e:
            logger.warning(f"Could not parse geometry at {path}: {e}")
            return None
    try:
        return model.model_validate(data).model_dump()
    except ValidationError as e:
        logger.warning(f"Expected {model.__name__} at {path}, got unreadable geometry: {e.error_count()} error(s)")
        return None


def _walk(node: Any, encode: bool, path: str = "plot") -> Any:
    if isinstance(node, list):
        return [_walk(item, encode, f"{path}[{i}]") for i, item in enumerate(node)]
    if not isinstance(node, dict):
        return node

    out = {}
    for key, value in node.items():
        where = f"{path}.{key}"
        if key in GEOMETRY_KEYS:
            out[key] = _encode_geometry(value) if encode else _decode_geometry(value, GEOMETRY_KEYS[key], where)
        elif key in GEOMETRY_LIST_KEYS and isinstance(value, list):
            if encode:
                out[key] = [_encode_geometry(v) for v in value]
            else:
                decoded = [_decode_geometry(v, GEOMETRY_LIST_KEYS[key], f"{where}[{i}]") for i, v in enumerate(value)]
                out[key] = [d for d in decoded if d is not None]
        else:
            out[key] = _walk(value, encode, where)
    return out


def encode_plot(plot: Plot) -> Dict[str, Any]:
    """Plot -> JSON-ready dict with geometries as GeoJSON strings"""
    return _walk(plot.model_dump(mode="json"), encode=True)


def decode_plot(data: Dict[str, Any]) -> Plot:
    """Inverse of encode_plot; unreadable geometries become None"""
    return Plot.model_validate(_walk(data, encode=False))


class PlotRepository:
    """
    In-memory plot store with JSON file save/load

    Usage:
        repo = PlotRepository()
        repo.add(plot)
        repo.save("output/plots.json")
        repo = PlotRepository.load("output/plots.json")
    """

    def __init__(self, plots: Optional[List[Plot]] = None):
        self._plots: Dict[str, Plot] = {}
        for plot in plots or []:
            self.add(plot)

    def __contains__(self, plot_id: str) -> bool:
        return plot_id in self._plots

    def __iter__(self) -> Iterator[Plot]:
        return iter(self._plots.values())

    def __len__(self) -> int:
        return len(self._plots)

    def add(self, plot: Plot) -> Plot:
        self._plots[plot.id] = plot
        return plot

    def get(self, plot_id: str) -> Plot:
        try:
            return self._plots[plot_id]
        except KeyError:
            raise PlotNotFoundError(plot_id) from None

    def update(self, plot: Plot) -> Plot:
        if plot.id not in self._plots:
            raise PlotNotFoundError(plot.id)
        self._plots[plot.id] = plot
        return plot

    def save(self, output_path: str) -> str:
        os.makedirs(os.path.dirname(output_path) or ".", exist_ok=True)
        payload = {"plots": [encode_plot(p) for p in self._plots.values()]}
        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2, ensure_ascii=False)
        logger.info(f"Saved {len(self._plots)} plot(s) to {output_path}")
        return output_path

    @classmethod
    def load(cls, input_path: str) -> "PlotRepository":
        with open(input_path, "r", encoding="utf-8") as f:
            payload = json.load(f)
        plots = [decode_plot(item) for item in payload.get("plots", [])]
        logger.info(f"Loaded {len(plots)} plot(s) from {input_path}")
        return cls(plots)
