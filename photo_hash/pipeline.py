"""
單一項目處理流程：解碼 → 指紋 → 絕對路徑 → 輸出

兩個輸出：
  - 結果：out (預設 stdout)，每張圖一行 "<指紋 base64>\t<絕對路徑>"
  - 診斷：logger.error，CLI 會格式化成 stderr 上的 "ERROR: <描述>"

寫入診斷前一定先 flush 結果輸出，確保共用終端機時兩者的順序
與產生順序一致。
"""

import logging
import os
import sys
from dataclasses import dataclass
from typing import TextIO

from .exceptions import CanonicalizeError, ImageDecodeError, TraversalError
from .hasher import hash_image
from .walker import WalkItem

logger = logging.getLogger(__name__)


@dataclass
class ScanStats:
    """Counters accumulated across every processed item."""
    hashed: int = 0
    traversal_errors: int = 0
    decode_errors: int = 0
    canonicalize_errors: int = 0

    @property
    def errors(self) -> int:
        return self.traversal_errors + self.decode_errors + self.canonicalize_errors


def canonicalize(path: str) -> str:
    """
    取得絕對、已解析所有符號連結的路徑。

    Raises:
        CanonicalizeError: 路徑已不存在或無法解析
    """
    try:
        return os.path.realpath(path, strict=True)
    except OSError as e:
        raise CanonicalizeError(path, e) from e


class HashPipeline:
    """Turns walker items into result lines or diagnostics, one at a time."""

    def __init__(self, out: TextIO | None = None):
        self.out = out if out is not None else sys.stdout
        self.stats = ScanStats()

    def process(self, item: WalkItem) -> None:
        if isinstance(item, TraversalError):
            self.stats.traversal_errors += 1
            self._report(str(item))
            return

        if item.is_dir:
            return

        try:
            fingerprint = hash_image(item.path)
        except ImageDecodeError as e:
            self.stats.decode_errors += 1
            self._report(str(e))
            return

        # 指紋算完後檔案可能已被移除；只回報這一筆，不中止整個掃描
        try:
            canonical_path = canonicalize(item.path)
        except CanonicalizeError as e:
            self.stats.canonicalize_errors += 1
            self._report(str(e))
            return

        self.out.write(f"{fingerprint}\t{canonical_path}\n")
        self.stats.hashed += 1

    def flush(self) -> None:
        self.out.flush()

    def _report(self, description: str) -> None:
        self.out.flush()
        logger.error("%s", description)
