"""
目錄走訪模組 — 有界限的 depth-first walker

規則：
  - 深度：depth < min_depth 的項目不輸出但仍會往下走；
    depth == max_depth 的目錄不再開啟（不浪費超出範圍的列舉）
  - 符號連結：預設當成葉節點；follow_links=True 時當成目錄跟進，
    並偵測指回祖先目錄的循環
  - 檔案系統邊界：same_file_system=True 時不進入其他 device 的目錄
  - 剪枝：進入目錄前先呼叫 should_prune，整棵子樹直接略過、不開啟
  - 資源上限：同時開啟的目錄 handle 不超過 max_open

單一項目失敗時 yield 一個 TraversalError，然後繼續走訪兄弟 / 上層目錄。
"""

import logging
import os
import stat
from collections import deque
from dataclasses import dataclass
from typing import Callable, Iterator, Union

from .exceptions import TraversalError

logger = logging.getLogger(__name__)

HIDDEN_PREFIX = "."
DEFAULT_MAX_OPEN = 32


@dataclass(frozen=True)
class TraversalPolicy:
    """走訪策略，每個 root 建立一次，走訪期間不變"""
    follow_links: bool = False
    min_depth: int = 0
    max_depth: int | None = None  # None = 不限深度
    max_open: int = DEFAULT_MAX_OPEN
    same_file_system: bool = False

    def allows_descent(self, depth: int) -> bool:
        """depth 這層的目錄是否還能往下列舉"""
        return self.max_depth is None or depth < self.max_depth

    def is_empty(self) -> bool:
        """min_depth > max_depth 時不會有任何輸出"""
        return self.max_depth is not None and self.min_depth > self.max_depth


@dataclass(frozen=True)
class DirectoryEntry:
    """Represents a filesystem node found during traversal."""
    path: str
    depth: int
    is_dir: bool
    is_symlink: bool = False

    @property
    def file_name(self) -> str:
        # root 可能是 "." 或 "/"，basename 為空時用整個路徑
        return os.path.basename(os.path.normpath(self.path)) or self.path


WalkItem = Union[DirectoryEntry, TraversalError]


def is_hidden(entry: DirectoryEntry) -> bool:
    """預設剪枝條件：名稱以 . 開頭"""
    return entry.file_name.startswith(HIDDEN_PREFIX)


class _DirFrame:
    """
    走訪堆疊上的一個目錄。

    handle 為開啟中的 os.scandir iterator；被逐出 (evict) 後
    剩餘的子項目改存在 buffered，之後回溯時直接從 buffered 繼續。
    """

    __slots__ = ("path", "depth", "identity", "handle", "buffered")

    def __init__(self, path: str, depth: int, identity: tuple[int, int], handle):
        self.path = path
        self.depth = depth
        self.identity = identity
        self.handle = handle
        self.buffered: deque | None = None

    def next_child(self):
        """
        取下一個子項目。

        Returns:
            os.DirEntry、逐出時記下的 TraversalError，或 None（已讀完）

        Raises:
            OSError: 讀取目錄內容失敗
        """
        if self.buffered is not None:
            return self.buffered.popleft() if self.buffered else None
        return next(self.handle, None)

    def evict(self) -> None:
        """把尚未讀取的子項目讀進記憶體，然後關閉 handle。"""
        pending: deque = deque()
        try:
            for child in self.handle:
                pending.append(child)
        except OSError as e:
            pending.append(TraversalError(self.path, self.depth, e))
        finally:
            self.handle.close()
            self.handle = None
        self.buffered = pending
        logger.debug(
            "Evicted handle for %s (%d entries buffered)", self.path, len(pending),
        )

    def close(self) -> None:
        if self.handle is not None:
            self.handle.close()
            self.handle = None


class Walker:
    """
    Lazy depth-first walker over one root directory.

    Iterating a Walker yields DirectoryEntry or TraversalError items in
    discovery order. A Walker can only be consumed once.
    """

    def __init__(
        self,
        root: str,
        policy: TraversalPolicy | None = None,
        should_prune: Callable[[DirectoryEntry], bool] = is_hidden,
    ):
        self.root = root
        self.policy = policy or TraversalPolicy()
        self.should_prune = should_prune
        self.max_open = max(1, self.policy.max_open)
        self.peak_open_handles = 0
        self._root_dev: int | None = None
        self._stack: list[_DirFrame] = []
        self._open: deque[_DirFrame] = deque()  # 依開啟先後排序
        self._items = self._walk()

    def __iter__(self) -> Iterator[WalkItem]:
        return self._items

    @property
    def open_handles(self) -> int:
        return len(self._open)

    def close(self) -> None:
        """釋放所有仍開啟的目錄 handle"""
        for frame in self._stack:
            frame.close()
        self._stack.clear()
        self._open.clear()

    # ── 走訪主迴圈 ──────────────────────────────

    def _walk(self) -> Iterator[WalkItem]:
        try:
            if self.policy.is_empty():
                logger.debug(
                    "min_depth %d > max_depth %d, nothing to walk under %s",
                    self.policy.min_depth, self.policy.max_depth, self.root,
                )
                return

            yield from self._walk_root()

            while self._stack:
                frame = self._stack[-1]
                try:
                    child = frame.next_child()
                except OSError as e:
                    self._pop()
                    yield TraversalError(frame.path, frame.depth, e)
                    continue

                if child is None:
                    self._pop()
                elif isinstance(child, TraversalError):
                    yield child
                else:
                    yield from self._visit(child, frame.depth + 1)
        finally:
            self.close()

    def _walk_root(self) -> Iterator[WalkItem]:
        # root 一律跟隨符號連結，且不經過 should_prune（"." 不能剪掉自己）
        try:
            st = os.stat(self.root)
        except OSError as e:
            yield TraversalError(self.root, 0, e)
            return

        self._root_dev = st.st_dev
        entry = DirectoryEntry(
            self.root, 0, stat.S_ISDIR(st.st_mode), os.path.islink(self.root),
        )
        if self.policy.min_depth == 0:
            yield entry
        if entry.is_dir and self.policy.allows_descent(0):
            yield from self._push(entry, st)

    def _visit(self, dirent: os.DirEntry, depth: int) -> Iterator[WalkItem]:
        policy = self.policy
        st = None
        lookup_error = None
        try:
            is_symlink = dirent.is_symlink()
            is_dir = dirent.is_dir(follow_symlinks=False)
        except OSError as e:
            is_symlink = is_dir = False
            lookup_error = e

        # 先以連結本身判斷是否剪枝，被剪掉的項目不會 stat，也不會產生錯誤
        entry = DirectoryEntry(dirent.path, depth, is_dir, is_symlink)
        if self.should_prune(entry):
            logger.debug("Pruned: %s", entry.path)
            return
        if lookup_error is not None:
            yield TraversalError(dirent.path, depth, lookup_error)
            return

        if policy.follow_links and is_symlink:
            try:
                # 斷掉的連結在這裡 raise
                st = os.stat(dirent.path)
            except OSError as e:
                yield TraversalError(dirent.path, depth, e)
                return
            resolved = DirectoryEntry(dirent.path, depth, stat.S_ISDIR(st.st_mode), True)
            if resolved != entry and self.should_prune(resolved):
                logger.debug("Pruned: %s", resolved.path)
                return
            entry = resolved

        descend = entry.is_dir and policy.allows_descent(depth)
        if descend:
            try:
                if st is None:
                    st = dirent.stat(follow_symlinks=False)
            except OSError as e:
                yield TraversalError(entry.path, depth, e)
                return

            if policy.follow_links:
                ancestor = self._find_ancestor((st.st_dev, st.st_ino))
                if ancestor is not None:
                    yield TraversalError(entry.path, depth, ancestor=ancestor)
                    return

            if policy.same_file_system and st.st_dev != self._root_dev:
                logger.debug("Different file system, not descending: %s", entry.path)
                descend = False

        if depth >= policy.min_depth:
            yield entry
        if descend:
            yield from self._push(entry, st)

    # ── handle 管理 ─────────────────────────────

    def _push(self, entry: DirectoryEntry, st: os.stat_result) -> Iterator[WalkItem]:
        if len(self._open) >= self.max_open:
            self._open.popleft().evict()

        try:
            handle = os.scandir(entry.path)
        except OSError as e:
            yield TraversalError(entry.path, entry.depth, e)
            return

        frame = _DirFrame(entry.path, entry.depth, (st.st_dev, st.st_ino), handle)
        self._stack.append(frame)
        self._open.append(frame)
        self.peak_open_handles = max(self.peak_open_handles, len(self._open))

    def _pop(self) -> None:
        frame = self._stack.pop()
        if frame.handle is not None:
            self._open.remove(frame)
            frame.close()

    def _find_ancestor(self, identity: tuple[int, int]) -> str | None:
        for frame in self._stack:
            if frame.identity == identity:
                return frame.path
        return None
