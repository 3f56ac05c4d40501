"""
掃描模組 — 依序走訪每個 root，輸出每張圖片的指紋

流程：
  1. 驗證設定
  2. 每個 root 建立一個 Walker（同一份 TraversalPolicy）
  3. Walker 產出的每個項目依序交給 HashPipeline
  4. 每個 root 結束時 flush 結果輸出

完全循序：一個項目處理完才向 Walker 要下一個，root 之間沒有共用狀態。
"""

import logging
from typing import Callable, TextIO

from .config import ScanConfig
from .hasher import init_heic_support
from .pipeline import HashPipeline, ScanStats
from .walker import DirectoryEntry, Walker, is_hidden

logger = logging.getLogger(__name__)


def scan_root(
    root: str,
    config: ScanConfig,
    pipeline: HashPipeline,
    should_prune: Callable[[DirectoryEntry], bool] = is_hidden,
) -> None:
    """走訪單一 root，把每個項目交給 pipeline"""
    walker = Walker(root, config.to_policy(), should_prune)
    for item in walker:
        pipeline.process(item)
    pipeline.flush()
    logger.debug(
        "Finished %s (peak open handles: %d)", root, walker.peak_open_handles,
    )


def scan(
    config: ScanConfig,
    out: TextIO | None = None,
    should_prune: Callable[[DirectoryEntry], bool] = is_hidden,
) -> ScanStats:
    """
    主掃描流程。

    Args:
        config: 掃描設定
        out: 結果輸出 (預設 stdout)
        should_prune: 剪枝條件 (預設略過隱藏檔案 / 目錄)

    Returns:
        ScanStats 統計

    Raises:
        InvalidParameterError: 設定無效（在走訪任何目錄之前）
    """
    config.validate()

    heic_ok = init_heic_support()
    logger.info("HEIC support: %s", 'OK' if heic_ok else 'NOT AVAILABLE')

    pipeline = HashPipeline(out)
    for root in config.roots:
        logger.info("Scanning %s", root)
        scan_root(root, config, pipeline, should_prune)

    stats = pipeline.stats
    logger.info(
        "Done: %d hashed, %d errors (%d traversal, %d decode, %d path)",
        stats.hashed,
        stats.errors,
        stats.traversal_errors,
        stats.decode_errors,
        stats.canonicalize_errors,
    )
    return stats
