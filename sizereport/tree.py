from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from sizereport.errors import MalformedListingError
from sizereport.models import ReportHeader, ReportRecord
from sizereport.state import ViewState


DIRECTORY_TYPE = "D"
COMPONENT_TYPE = "C"
FILE_TYPE = "F"
JAVA_CLASS_TYPE = "J"
CONTAINER_TYPES = frozenset({DIRECTORY_TYPE, COMPONENT_TYPE, FILE_TYPE, JAVA_CLASS_TYPE})


@dataclass(slots=True)
class TypeStats:
    size: int = 0
    count: int = 0


@dataclass(slots=True)
class TreeNode:
    id_path: str
    short_name_index: int
    type: str
    src_path: str | None = None
    size: int = 0
    gzip_size: int = 0
    child_stats: dict[str, TypeStats] = field(default_factory=dict)
    # Keyed by "<type>:<short name>".
    children: dict[str, "TreeNode"] = field(default_factory=dict)

    @property
    def short_name(self) -> str:
        return self.id_path[self.short_name_index :]

    @property
    def is_container(self) -> bool:
        return self.type[:1] in CONTAINER_TYPES

    def find(self, id_path: str) -> "TreeNode | None":
        if id_path.strip("/") == self.id_path:
            return self
        target = id_path.strip("/")
        for child in self.children.values():
            prefix = child.id_path
            if target == prefix or target.startswith(prefix + "/") or target.startswith(prefix + ":"):
                # A removed file and an added directory may share a path.
                found = child.find(target)
                if found is not None:
                    return found
        return None

    def _add(self, record: ReportRecord) -> None:
        self.size += record.byte_delta
        self.gzip_size += record.compressed_delta
        stats = self.child_stats.setdefault(record.type, TypeStats())
        stats.size += record.byte_delta
        stats.count += record.unit


@dataclass(slots=True)
class BuildTree:
    header: ReportHeader
    root: TreeNode
    record_count: int


def _child(parent: TreeNode, id_path: str, short_name: str, node_type: str, **kwargs) -> TreeNode:
    key = f"{node_type}:{short_name}"
    node = parent.children.get(key)
    if node is None:
        node = TreeNode(
            id_path=id_path,
            short_name_index=len(id_path) - len(short_name),
            type=node_type,
            **kwargs,
        )
        parent.children[key] = node
    return node


def build_tree(
    stream: Iterable[ReportHeader | ReportRecord],
    state: ViewState | None = None,
) -> BuildTree:
    """Fold a report stream into a directory -> file -> symbol tree.

    Every container accumulates its descendants' sizes and per-type stats; a
    stat's count sums the records' units, so removed files count negatively.
    When ``state`` is given, its type filter is applied and its ``diff_mode``
    flag is synced with the stream header.
    """
    iterator = iter(stream)
    header = next(iterator, None)
    if not isinstance(header, ReportHeader):
        raise MalformedListingError("Report stream must start with a header.")

    if state is not None and state.diff_mode != header.diff_mode:
        state.set_flag("diff_mode", header.diff_mode)
    allowed = state.types if state is not None else None

    root = TreeNode(id_path="", short_name_index=0, type=DIRECTORY_TYPE)
    count = 0
    for record in iterator:
        if not isinstance(record, ReportRecord):
            raise MalformedListingError("Report stream contains more than one header.")
        count += 1
        if allowed is not None and record.type not in allowed:
            continue

        parts = [part for part in record.path.split("/") if part]
        if not parts:
            raise MalformedListingError(f"Report record has an empty path: {record!r}")

        chain = [root]
        node = root
        for depth, part in enumerate(parts):
            id_path = "/".join(parts[: depth + 1])
            node_type = FILE_TYPE if depth == len(parts) - 1 else DIRECTORY_TYPE
            node = _child(node, id_path, part, node_type)
            chain.append(node)

        symbol_id = f"{node.id_path}:{record.name}"
        symbol = _child(node, symbol_id, record.name, record.type, src_path=record.path)
        symbol.size += record.byte_delta
        symbol.gzip_size += record.compressed_delta

        for container in chain:
            container._add(record)

    if count != header.total:
        raise MalformedListingError(
            f"Report header declares {header.total} record(s) but {count} were received."
        )
    return BuildTree(header=header, root=root, record_count=count)
