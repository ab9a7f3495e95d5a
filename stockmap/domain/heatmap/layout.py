"""
Treemap Layout Engine.

Computes a space-filling rectangular subdivision proportional to item
weight (market cap). The algorithm is a balanced binary split rather than
row-based squarify:

1. One item left -> it takes the whole rectangle.
2. Split the (ordered) list after index k where the cumulative weight is
   closest to half the total (first minimum wins).
3. Cut the rectangle along its longer axis in proportion to the two halves.
4. Repeat on both halves.

Output geometry is exact: sibling rectangles never overlap and their areas
sum to the parent's area up to floating point error. Size policies (skip
tiny cells, hide labels) belong to the renderer, never to this module.

The engine is a pure function of its inputs. Input order is preserved;
callers decide the ordering (the renderer sorts by weight descending).
"""

from __future__ import annotations

import math
from typing import Iterable, Iterator, List, Sequence, Tuple, Union

from ...models.heatmap import LayoutNode, SectorGroup, StockItem
from ...utils.logging_setup import get_logger
from .errors import InvalidBoundsError

logger = get_logger(__name__)

Placeable = Union[StockItem, SectorGroup]

# (ref, weight) pairs plus the rectangle they must fill
_WorkUnit = Tuple[List[Tuple[Placeable, float]], float, float, float, float]


def weight_of(ref: Placeable) -> float:
    """Layout weight of an item or group (groups weigh their total)."""
    if isinstance(ref, SectorGroup):
        return ref.total_weight
    return ref.weight


def layout(
    items: Sequence[Placeable],
    x: float,
    y: float,
    width: float,
    height: float,
) -> List[LayoutNode]:
    """
    Lay out weighted items inside a rectangle.

    Args:
        items: Stocks (or sector groups) in placement order
        x, y: Top-left corner of the container
        width, height: Container size, must be > 0

    Returns:
        Flat list of LayoutNode, one per item with positive weight, in
        depth-first order. Empty list if nothing has positive weight.

    Raises:
        InvalidBoundsError: If width/height is not a positive finite number
    """
    _validate_bounds(width, height)
    return _layout_unchecked(items, x, y, width, height)


def layout_sectors(
    groups: Sequence[SectorGroup],
    x: float,
    y: float,
    width: float,
    height: float,
    header_height: float = 30.0,
) -> List[LayoutNode]:
    """
    Two-level layout: sectors first, then each sector's stocks.

    Each sector is placed as a single item weighted by its total weight.
    A header strip of `header_height` is reserved at the top of the sector
    rectangle (for the sector title) and the members are laid out in what
    remains. If nothing remains, the sector gets no children.

    Returns:
        One LayoutNode per sector, stocks in `children`.
    """
    _validate_bounds(width, height)
    header = max(0.0, header_height) if math.isfinite(header_height) else 0.0

    sector_nodes = _layout_unchecked(groups, x, y, width, height)
    for node in sector_nodes:
        node.header_height = min(header, node.height)
        content_height = node.height - header
        if content_height <= 0 or node.width <= 0:
            logger.debug(
                f"Sector '{node.ref.name}' too short for members "
                f"({node.height:.1f} <= header {header:.1f})"
            )
            continue
        node.children = _layout_unchecked(
            node.ref.items, node.x, node.y + header, node.width, content_height
        )

    return sector_nodes


def iter_leaves(nodes: Iterable[LayoutNode]) -> Iterator[LayoutNode]:
    """Yield leaf (stock) nodes depth-first."""
    for node in nodes:
        if node.is_group:
            yield from iter_leaves(node.children)
        else:
            yield node


def leaf_area(nodes: Iterable[LayoutNode]) -> float:
    """Total area covered by leaf nodes."""
    return sum(leaf.area for leaf in iter_leaves(nodes))


def balanced_split_index(weights: Sequence[float], total: float) -> int:
    """
    Index k that makes sum(weights[:k+1]) closest to total / 2.

    Only k in [0, len-2] is considered so both halves are non-empty.
    """
    target = total / 2.0
    cumulative = 0.0
    best_index = 0
    best_diff = math.inf
    for i in range(len(weights) - 1):
        cumulative += weights[i]
        diff = abs(cumulative - target)
        if diff < best_diff:
            best_diff = diff
            best_index = i
    return best_index


def _layout_unchecked(
    items: Sequence[Placeable],
    x: float,
    y: float,
    width: float,
    height: float,
) -> List[LayoutNode]:
    weighted = []
    for ref in items:
        w = weight_of(ref)
        if math.isfinite(w) and w > 0:
            weighted.append((ref, float(w)))
    if not weighted:
        return []

    nodes: List[LayoutNode] = []

    # Explicit stack: skewed weight distributions split one item off per
    # level, which would exceed the recursion limit for large universes.
    stack: List[_WorkUnit] = [(weighted, x, y, width, height)]
    while stack:
        batch, bx, by, bw, bh = stack.pop()

        if len(batch) == 1:
            nodes.append(LayoutNode(ref=batch[0][0], x=bx, y=by, width=bw, height=bh))
            continue

        weights = [w for _, w in batch]
        total = sum(weights)
        if total <= 0:
            continue

        k = balanced_split_index(weights, total)
        first, second = batch[: k + 1], batch[k + 1 :]
        proportion = sum(weights[: k + 1]) / total

        if bw > bh:
            first_width = bw * proportion
            first_rect = (bx, by, first_width, bh)
            second_rect = (bx + first_width, by, bw - first_width, bh)
        else:
            first_height = bh * proportion
            first_rect = (bx, by, bw, first_height)
            second_rect = (bx, by + first_height, bw, bh - first_height)

        # LIFO: push second first so the first group is emitted first
        stack.append((second, *second_rect))
        stack.append((first, *first_rect))

    return nodes


def _validate_bounds(width: float, height: float) -> None:
    for value in (width, height):
        if not isinstance(value, (int, float)) or not math.isfinite(value) or value <= 0:
            raise InvalidBoundsError(width, height)
