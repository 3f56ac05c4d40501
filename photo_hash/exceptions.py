"""自訂例外類別，供 CLI 層捕捉後統一輸出錯誤訊息"""


class PhotoHashError(Exception):
    """所有 photo-hash 錯誤的基礎類別"""
    pass


class InvalidParameterError(PhotoHashError):
    """設定參數無效（掃描開始前即中止）"""
    pass


class TraversalError(PhotoHashError):
    """
    走訪目錄時單一項目失敗（權限不足、斷掉的連結、循環連結）。

    Walker 不會 raise 這個例外，而是把它當成值 yield 出去，
    讓呼叫端判斷後繼續處理下一個項目。
    """

    def __init__(
        self,
        path: str,
        depth: int,
        cause: OSError | None = None,
        ancestor: str | None = None,
    ):
        self.path = path
        self.depth = depth
        self.cause = cause
        self.ancestor = ancestor
        super().__init__(str(self))

    @property
    def is_loop(self) -> bool:
        return self.ancestor is not None

    def __str__(self) -> str:
        if self.ancestor is not None:
            return (
                f"File system loop found: {self.path} points to an "
                f"ancestor {self.ancestor}"
            )
        reason = self.cause.strerror if self.cause and self.cause.strerror else self.cause
        return f"IO error for operation on {self.path}: {reason}"


class ImageDecodeError(PhotoHashError):
    """檔案無法解碼成圖片"""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"{path}: {reason}")


class CanonicalizeError(PhotoHashError):
    """無法取得檔案的絕對、解析連結後的路徑"""

    def __init__(self, path: str, cause: OSError):
        self.path = path
        self.cause = cause
        super().__init__(f"Cannot canonicalize {path}: {cause}")
