"""
Board Kernel — Layout Tree Traversal

Read-only helpers over the recursive box tree.
A path is a sequence of child indices starting at JobRowConfig.boxes.
Resolution is O(depth): one index lookup per path segment.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Callable, Iterator, List, Optional, Sequence, Tuple

from .domain_types import JobRowBox, JobRowConfig, LeafBox

Path = Tuple[int, ...]


def normalize_path(path) -> Optional[Path]:
    """Return path as a tuple of ints, or None if it is not a usable path."""
    try:
        items = tuple(path)
    except TypeError:
        return None
    for i in items:
        # bool is an int subclass; True is not an index.
        if isinstance(i, bool) or not isinstance(i, int) or i < 0:
            return None
    return items


def resolve_path(boxes: Sequence[JobRowBox], path) -> Optional[JobRowBox]:
    """Walk ``path`` through ``boxes``; None if any segment is missing."""
    norm = normalize_path(path)
    if not norm:
        return None
    level: Sequence[JobRowBox] = boxes
    node: Optional[JobRowBox] = None
    for index in norm:
        if index >= len(level):
            return None
        node = level[index]
        level = node.sub_boxes
    return node


def get_box(config: JobRowConfig, path) -> Optional[JobRowBox]:
    return resolve_path(config.boxes, path)


def iter_boxes(boxes: Sequence[JobRowBox]) -> Iterator[Tuple[Path, JobRowBox]]:
    """Depth-first, pre-order (path, box) walk."""
    stack: List[Tuple[Path, JobRowBox]] = [
        ((i,), b) for i, b in reversed(list(enumerate(boxes)))
    ]
    while stack:
        path, box = stack.pop()
        yield path, box
        subs = box.sub_boxes
        for i in reversed(range(len(subs))):
            stack.append((path + (i,), subs[i]))


def leaf_paths(config: JobRowConfig) -> List[Path]:
    return [p for p, b in iter_boxes(config.boxes) if isinstance(b, LeafBox)]


def depth(config: JobRowConfig) -> int:
    """Deepest path length; 0 for an unsplit row."""
    return max((len(p) for p, _ in iter_boxes(config.boxes)), default=0)


def replace_at(
    boxes: Tuple[JobRowBox, ...],
    path: Path,
    fn: Callable[[JobRowBox], JobRowBox],
) -> Tuple[JobRowBox, ...]:
    """
    Rebuild only the spine along ``path``; untouched siblings are reused.
    Caller guarantees the path resolves.
    """
    head, rest = path[0], path[1:]
    node = boxes[head]
    if rest:
        node = replace(node, sub_boxes=replace_at(node.sub_boxes, rest, fn))
    else:
        node = fn(node)
    return boxes[:head] + (node,) + boxes[head + 1:]
