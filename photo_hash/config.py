"""掃描設定：CLI 參數 → ScanConfig → 每個 root 的 TraversalPolicy"""

from dataclasses import dataclass

from .exceptions import InvalidParameterError
from .walker import DEFAULT_MAX_OPEN, TraversalPolicy

DEFAULT_ROOT = "."


@dataclass(frozen=True)
class ScanConfig:
    """Resolved scan settings for one invocation."""
    roots: tuple[str, ...] = (DEFAULT_ROOT,)
    follow_links: bool = False
    min_depth: int = 0
    max_depth: int | None = None
    max_open: int = DEFAULT_MAX_OPEN
    same_file_system: bool = False

    def __post_init__(self):
        # 沒給任何 root 時掃描目前目錄
        roots = tuple(self.roots) or (DEFAULT_ROOT,)
        object.__setattr__(self, "roots", roots)

    def validate(self) -> None:
        """
        驗證設定值。

        min_depth > max_depth 不算錯誤，只會得到空的走訪結果。

        Raises:
            InvalidParameterError: 深度為負數或 handle 上限 < 1
        """
        if self.min_depth < 0:
            raise InvalidParameterError("min_depth must be >= 0")
        if self.max_depth is not None and self.max_depth < 0:
            raise InvalidParameterError("max_depth must be >= 0")
        if self.max_open < 1:
            raise InvalidParameterError("max_open must be >= 1")

    def to_policy(self) -> TraversalPolicy:
        return TraversalPolicy(
            follow_links=self.follow_links,
            min_depth=self.min_depth,
            max_depth=self.max_depth,
            max_open=self.max_open,
            same_file_system=self.same_file_system,
        )
