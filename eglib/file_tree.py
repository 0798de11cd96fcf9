"""Lazy-loading file tree for the File Manager.

The tree starts from a synthetic "All Files" root and loads one directory
level at a time through the top-level listing endpoint. Every resolved level
is cached per (bucket, prefix) for the lifetime of the browser, and the child
directories of each freshly loaded level are pre-fetched in the background so
that drilling down usually hits the cache.
"""

from __future__ import annotations

import asyncio
import logging
from collections import OrderedDict
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Protocol, Set, Tuple

from eglib.schemas import RequestTopLevelBucketObjects, S3TopLevelResponse
from eglib.toast import ToastStore

LOGGER = logging.getLogger("easygenomics.file_tree")

ROOT_NAME = "All Files"


class ListingClient(Protocol):
    async def request_top_level_bucket_objects(
        self, request: RequestTopLevelBucketObjects
    ) -> S3TopLevelResponse: ...


class NodeType(str, Enum):
    FILE = "file"
    DIRECTORY = "directory"


@dataclass(eq=False)
class FileTreeNode:
    """A file or directory in the tree.

    ``key`` is the object key for files and the full prefix (with trailing
    slash) for directories. ``children`` stays None until the directory has
    been loaded.
    """

    type: NodeType
    name: str
    key: str = ""
    size: Optional[int] = None
    last_modified: Optional[str] = None
    children: Optional[List["FileTreeNode"]] = None
    is_loading: bool = False

    @property
    def is_directory(self) -> bool:
        return self.type == NodeType.DIRECTORY

    @property
    def child_directories(self) -> List["FileTreeNode"]:
        return [child for child in self.children or [] if child.is_directory]


def _last_segment(path: str) -> str:
    return path.rstrip("/").rsplit("/", 1)[-1]


def build_children(listing: S3TopLevelResponse) -> List[FileTreeNode]:
    """Turn one listing into child nodes: directories first, then files.

    Folder placeholder objects (keys ending in "/") are not files and are
    skipped.
    """
    directories = [
        FileTreeNode(type=NodeType.DIRECTORY, name=_last_segment(cp.Prefix), key=cp.Prefix)
        for cp in listing.CommonPrefixes
        if _last_segment(cp.Prefix)
    ]
    files = [
        FileTreeNode(
            type=NodeType.FILE,
            name=_last_segment(obj.Key),
            key=obj.Key,
            size=obj.Size,
            last_modified=obj.LastModified,
        )
        for obj in listing.Contents
        if not obj.Key.endswith("/")
    ]
    return directories + files


class DirectoryCache:
    """Resolved children per (bucket, prefix).

    Unbounded by default. With ``max_entries`` set, the least recently used
    directory is evicted first.
    """

    def __init__(self, max_entries: Optional[int] = None):
        if max_entries is not None and max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.max_entries = max_entries
        self._entries: "OrderedDict[Tuple[str, str], List[FileTreeNode]]" = OrderedDict()

    def get(self, bucket: str, prefix: str) -> Optional[List[FileTreeNode]]:
        key = (bucket, prefix)
        children = self._entries.get(key)
        if children is not None and self.max_entries is not None:
            self._entries.move_to_end(key)
        return children

    def set(self, bucket: str, prefix: str, children: List[FileTreeNode]) -> None:
        key = (bucket, prefix)
        self._entries[key] = children
        self._entries.move_to_end(key)
        if self.max_entries is not None:
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)

    def contains(self, bucket: str, prefix: str) -> bool:
        return (bucket, prefix) in self._entries

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class FileTreeBrowser:
    """Navigable, cached view over one laboratory's storage."""

    def __init__(
        self,
        client: ListingClient,
        laboratory_id: str,
        root_prefix: str = "",
        bucket: Optional[str] = None,
        toast_store: Optional[ToastStore] = None,
        start_path: Optional[str] = None,
        cache: Optional[DirectoryCache] = None,
    ):
        """Create a browser; call :meth:`initialize` to load the root.

        Args:
            client: Anything exposing ``request_top_level_bucket_objects``
            laboratory_id: Laboratory whose storage is browsed
            root_prefix: Prefix shown as "All Files" ("" = laboratory default)
            bucket: Bucket override ("" / None = laboratory bucket)
            toast_store: Receives user-visible errors
            start_path: Slash-separated directory names to open after the root loads
            cache: Directory cache (a fresh unbounded one if omitted)
        """
        self.client = client
        self.laboratory_id = laboratory_id
        self.root_prefix = root_prefix
        self.bucket = bucket or ""
        self.toast_store = toast_store or ToastStore()
        self.start_path = start_path
        self.cache = cache if cache is not None else DirectoryCache()
        self.root = self._new_root()
        self.path: List[FileTreeNode] = [self.root]
        self._prefetch_tasks: Set[asyncio.Task] = set()
        self._prefetching: Dict[str, asyncio.Task] = {}
        # Bumped on every reset so late responses for an old root are dropped.
        self._generation = 0

    def _new_root(self) -> FileTreeNode:
        return FileTreeNode(type=NodeType.DIRECTORY, name=ROOT_NAME, key=self.root_prefix)

    @property
    def current_directory(self) -> FileTreeNode:
        return self.path[-1]

    @property
    def breadcrumbs(self) -> List[str]:
        return [node.name for node in self.path]

    # ========== Loading ==========

    async def _fetch_children(self, prefix: str, generation: Optional[int] = None) -> List[FileTreeNode]:
        if generation is None:
            generation = self._generation
        request = RequestTopLevelBucketObjects(
            LaboratoryId=self.laboratory_id,
            S3Bucket=self.bucket or None,
            S3Prefix=prefix or None,
        )
        listing = await self.client.request_top_level_bucket_objects(request)
        children = build_children(listing)
        if generation == self._generation:
            self.cache.set(self.bucket, prefix, children)
        else:
            LOGGER.debug("Discarding listing for %s fetched before a root reset", prefix)
        return children

    async def load_directory_children(self, prefix: str) -> List[FileTreeNode]:
        """Return the children of prefix, from cache when possible.

        A fresh load also starts pre-fetching every child directory.
        Errors propagate to the caller.
        """
        cached = self.cache.get(self.bucket, prefix)
        if cached is not None:
            return cached

        generation = self._generation
        children = await self._fetch_children(prefix, generation)
        if generation == self._generation:
            self.prefetch_next_level(children, prefix)
        return children

    def prefetch_next_level(self, children: List[FileTreeNode], prefix_path: str) -> None:
        """Fetch the children of each uncached child directory in the background.

        Fire-and-forget: failures are logged and swallowed, and nothing is
        cached for a failed directory, so a later explicit navigation simply
        loads it again.
        """
        for child in children:
            if not child.is_directory:
                continue
            prefix = child.key or f"{prefix_path}{child.name}/"
            if self.cache.contains(self.bucket, prefix) or prefix in self._prefetching:
                continue
            task = asyncio.ensure_future(self._prefetch_directory(prefix, self._generation))
            self._prefetching[prefix] = task
            self._prefetch_tasks.add(task)
            task.add_done_callback(self._prefetch_done(prefix))

    def _prefetch_done(self, prefix: str):
        def _done(task: asyncio.Task) -> None:
            self._prefetch_tasks.discard(task)
            if self._prefetching.get(prefix) is task:
                del self._prefetching[prefix]
        return _done

    async def _prefetch_directory(self, prefix: str, generation: int) -> None:
        if generation != self._generation:
            return
        try:
            await self._fetch_children(prefix, generation)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            LOGGER.debug("Pre-fetch of %s failed: %s", prefix, e)

    async def wait_for_prefetches(self) -> None:
        """Wait until every outstanding pre-fetch has settled."""
        while self._prefetch_tasks:
            await asyncio.gather(*list(self._prefetch_tasks), return_exceptions=True)

    async def close(self) -> None:
        """Cancel outstanding pre-fetches."""
        tasks = list(self._prefetch_tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    # ========== Navigation ==========

    async def initialize(self) -> None:
        """Reset to the root, clear the cache, load the root level.

        Follows ``start_path`` afterwards when one was given.
        """
        self._generation += 1
        generation = self._generation
        self.cache.clear()
        self._prefetching.clear()
        root = self.root = self._new_root()
        self.path = [root]

        root.is_loading = True
        try:
            children = await self.load_directory_children(self.root_prefix)
        except Exception as e:
            if generation != self._generation:
                return
            LOGGER.error("Failed to load root of laboratory %s: %s", self.laboratory_id, e)
            self.toast_store.error("Failed to load files")
            children = []
        finally:
            root.is_loading = False
        if generation != self._generation:
            LOGGER.debug("Root %r was replaced while loading", root.key)
            return
        root.children = children

        if self.start_path:
            await self.navigate_to_path(self.start_path)

    async def set_root_prefix(self, root_prefix: str) -> None:
        """Switch to a different root; no-op if it is unchanged."""
        if root_prefix == self.root_prefix and self.root.children is not None:
            return
        self.root_prefix = root_prefix
        await self.initialize()

    async def open_directory(self, node: FileTreeNode) -> None:
        """Descend into node, loading its children with a spinner if needed."""
        if node is self.current_directory:
            return

        generation = self._generation
        children = self.cache.get(self.bucket, node.key)
        if children is None:
            node.is_loading = True
            try:
                children = await self.load_directory_children(node.key)
            except Exception as e:
                if generation != self._generation:
                    return
                LOGGER.error("Failed to open directory %s: %s", node.key, e)
                self.toast_store.error(f"Failed to load folder '{node.name}'")
                children = []
            finally:
                node.is_loading = False
            if generation != self._generation:
                return
        node.children = children
        self.path.append(node)

    async def navigate_to_path(self, start_path: str) -> None:
        """Open each directory named in start_path, one after another.

        Stops at the first segment that is not a child directory of the
        current directory, or when the root is reset meanwhile.
        """
        generation = self._generation
        for segment in [s for s in start_path.strip("/").split("/") if s]:
            match = next(
                (child for child in self.current_directory.child_directories if child.name == segment),
                None,
            )
            if match is None:
                LOGGER.info("Deep link stopped at missing directory '%s'", segment)
                break
            await self.open_directory(match)
            if generation != self._generation:
                break

    def navigate_to(self, index: int) -> FileTreeNode:
        """Jump back to the breadcrumb at index."""
        if not 0 <= index < len(self.path):
            raise IndexError(f"No breadcrumb at index {index}")
        del self.path[index + 1:]
        return self.current_directory
