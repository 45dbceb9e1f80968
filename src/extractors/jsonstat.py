from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

from src.utils.errors import ParseStructure

logger = logging.getLogger(__name__)

# =============================================================================
# JSON-stat 2.0 flattener
#
# A response is a dense N-d cube laid out row-major:
#   id    = dimension order            e.g. [TypeRegistrering, DrivstoffType, ContentsCode, Tid]
#   size  = extent per dimension       e.g. [1, 4, 1, 36]
#   value = flat list (or sparse {flat_index: v})
# flat_index = sum(position[d] * stride[d]), stride[d] = product(size[d+1:])
# =============================================================================


def category_order(dim: Mapping[str, Any]) -> List[str]:
    """Category codes of one dimension in cube order (index may be a dict or a list)."""
    category = dim.get("category") if isinstance(dim, Mapping) else None
    if not isinstance(category, Mapping):
        raise ParseStructure("Dimension without category metadata")
    index = category.get("index")
    if index is None:
        labels = category.get("label")
        if isinstance(labels, Mapping) and len(labels) == 1:
            return list(labels)
        raise ParseStructure("Dimension category has no index")
    if isinstance(index, list):
        return [str(c) for c in index]
    if isinstance(index, Mapping):
        try:
            ordered = sorted(index.items(), key=lambda kv: int(kv[1]))
        except (TypeError, ValueError) as e:
            raise ParseStructure(f"Non-integer category position in index: {e}") from e
        return [str(code) for code, _ in ordered]
    raise ParseStructure(f"Unsupported category index type: {type(index).__name__}")


def strides(size: Sequence[int]) -> List[int]:
    out = [1] * len(size)
    for d in range(len(size) - 2, -1, -1):
        out[d] = out[d + 1] * int(size[d + 1])
    return out


def _value_at(values: Any, flat: int) -> float:
    if isinstance(values, list):
        v = values[flat] if flat < len(values) else None
    else:
        v = values.get(str(flat), values.get(flat))
    return 0 if v is None else v


def parse_jsonstat(
    response: Mapping[str, Any],
    series_dim: str,
    period_dim: str,
    select: Optional[Mapping[str, str]] = None,
) -> Dict[str, Dict[str, float]]:
    """
    Flatten a JSON-stat cube into {period_code: {series_code: value}}.

    Every other dimension must have size 1, or be pinned to one category through `select`.
    Null values read as 0.
    """
    dimension = response.get("dimension")
    size = response.get("size")
    values = response.get("value")
    if not isinstance(dimension, Mapping) or not size or values is None:
        raise ParseStructure("Invalid JSON-stat response: need dimension, size and value")

    try:
        size = [int(extent) for extent in size]
    except (TypeError, ValueError) as e:
        raise ParseStructure(f"Non-integer size in JSON-stat response: {size!r}") from e

    ids = list(response.get("id") or dimension.keys())
    if len(ids) != len(size):
        raise ParseStructure(f"id/size mismatch: {len(ids)} dimensions, {len(size)} sizes")
    for name in (series_dim, period_dim):
        if name not in ids:
            raise ParseStructure(f"Dimension {name!r} not in response (has {ids})")

    orders: Dict[str, List[str]] = {}
    for name, extent in zip(ids, size):
        if name not in dimension:
            raise ParseStructure(f"Dimension {name!r} listed in id but not described")
        codes = category_order(dimension[name])
        if len(codes) != int(extent):
            raise ParseStructure(f"Dimension {name!r} has {len(codes)} categories, size says {extent}")
        orders[name] = codes

    if isinstance(values, list):
        expected = 1
        for extent in size:
            expected *= int(extent)
        if len(values) != expected:
            raise ParseStructure(f"value has {len(values)} cells, size implies {expected}")

    select = dict(select or {})
    fixed: Dict[str, int] = {}
    for name in ids:
        if name in (series_dim, period_dim):
            continue
        codes = orders[name]
        if name in select:
            if select[name] not in codes:
                raise ParseStructure(f"Category {select[name]!r} not in dimension {name!r}")
            fixed[name] = codes.index(select[name])
        elif len(codes) == 1:
            fixed[name] = 0
        else:
            raise ParseStructure(f"Dimension {name!r} has {len(codes)} categories; pin one with select")

    stride = dict(zip(ids, strides(size)))
    base = sum(pos * stride[name] for name, pos in fixed.items())

    out: Dict[str, Dict[str, float]] = {}
    for ip, period in enumerate(orders[period_dim]):
        row = out.setdefault(period, {})
        for js, series in enumerate(orders[series_dim]):
            flat = base + ip * stride[period_dim] + js * stride[series_dim]
            row[series] = _value_at(values, flat)

    logger.debug("json-stat flattened periods=%d series=%d", len(out), len(orders[series_dim]))
    return out
