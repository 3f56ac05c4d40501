"""
圖片指紋計算模組

流程：
  1. 用 Pillow 完整解碼圖片（保留檔案中儲存的像素方向，不套用 EXIF orientation）
  2. 以最近鄰取樣縮放到 (2 × hash_size)² 的工作格
  3. 用 Rec.709 係數轉成灰階 (luma)
  4. 2-D DCT，取左上角 hash_size × hash_size 的低頻係數
  5. 係數 >= 平均值 → 1，否則 → 0，打包成 bytes 後以 base64 輸出

hash_size=8 → 64-bit 指紋（12 個 base64 字元）。
同樣的解碼像素一定得到同樣的指紋，下游去重比對依賴這一點。

安全措施：
  - 限制最大圖片像素數，超過上限視為解碼失敗，不載入記憶體
  - 解碼時 Pillow 發出的 warning（例如損毀的 EXIF）只記在 debug log，
    不直接寫到 stderr
"""

import base64
import logging
import warnings
from functools import lru_cache

from .exceptions import ImageDecodeError

logger = logging.getLogger(__name__)

# 指紋邊長：hash_size=8 → 8×8=64-bit
HASH_SIZE = 8

# DCT 工作格為指紋邊長的幾倍（8 → 16×16 灰階）
DCT_SCALE = 2

# Rec.709 luma 係數 (×10000)，整數運算後無條件捨去
LUMA_WEIGHTS = (2126, 7152, 722)

# 像素上限 (60 megapixels)，避免惡意或異常大圖吃光記憶體
MAX_IMAGE_PIXELS = 60_000_000


def open_image(path: str):
    """
    用 Pillow 解碼圖片。

    Image.open() 只讀標頭，這裡強制 load() 讓截斷或損毀的檔案
    在這一步就失敗，而不是在計算指紋時才出錯。

    Returns:
        與檔案脫鉤的 PIL Image（像素與檔案儲存的方向相同）

    Raises:
        ImageDecodeError: 不是圖片、格式不支援、檔案損毀或過大
    """
    from PIL import Image

    try:
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            with Image.open(path) as img:
                width, height = img.size
                pixel_count = width * height
                if pixel_count > MAX_IMAGE_PIXELS:
                    raise ImageDecodeError(
                        path, f"Image too large ({pixel_count:,} px)",
                    )
                img.load()
                decoded = img.copy()
    except Image.DecompressionBombError as e:
        raise ImageDecodeError(path, f"Decompression bomb detected ({e})") from e
    except (OSError, ValueError, SyntaxError) as e:
        raise ImageDecodeError(path, str(e)) from e

    for w in caught:
        logger.debug("%s: %s", path, w.message)
    return decoded


@lru_cache(maxsize=None)
def _dct_matrix(n: int):
    """n 點 orthonormal DCT-II 轉換矩陣"""
    import numpy as np

    k = np.arange(n).reshape(-1, 1)
    i = np.arange(n).reshape(1, -1)
    matrix = np.cos(np.pi * (2 * i + 1) * k / (2 * n)) * np.sqrt(2.0 / n)
    matrix[0, :] /= np.sqrt(2.0)
    matrix.setflags(write=False)
    return matrix


def to_luma(img):
    """
    RGB → 8-bit 灰階，使用 Rec.709 係數。

    Pillow 的 convert('L') 用的是 Rec.601，結果不同，所以自己算。
    灰階輸入 (r == g == b) 會原值保留。

    Returns:
        uint8 ndarray, shape (height, width)
    """
    import numpy as np

    rgb = np.asarray(img.convert('RGB'), dtype=np.uint32)
    weights = np.array(LUMA_WEIGHTS, dtype=np.uint32)
    return (rgb @ weights // 10000).astype(np.uint8)


def compute_fingerprint(img, hash_size: int = HASH_SIZE) -> bytes:
    """
    計算圖片的 DCT 感知指紋。

    Args:
        img: 已解碼的 PIL Image
        hash_size: 指紋邊長，產出 hash_size² bits

    Returns:
        packed bytes (hash_size² // 8 bytes)，big-endian bit order
    """
    import numpy as np
    from PIL import Image

    size = hash_size * DCT_SCALE
    img_small = img.convert('RGB').resize((size, size), Image.NEAREST)
    pixels = to_luma(img_small).astype(np.float64)
    del img_small

    matrix = _dct_matrix(size)
    coeffs = matrix @ pixels @ matrix.T

    low = coeffs[:hash_size, :hash_size]
    bits = (low >= low.mean()).flatten()
    return np.packbits(bits).tobytes()


def fingerprint_to_base64(fingerprint: bytes) -> str:
    """指紋 bytes → 標準 base64 字串"""
    return base64.b64encode(fingerprint).decode('ascii')


def hash_image(path: str, hash_size: int = HASH_SIZE) -> str:
    """
    解碼並計算單一檔案的指紋。

    Raises:
        ImageDecodeError: 檔案無法解碼成圖片
    """
    img = open_image(path)
    try:
        return fingerprint_to_base64(compute_fingerprint(img, hash_size))
    finally:
        img.close()


def init_heic_support() -> bool:
    """嘗試載入 HEIC 支援，回傳是否成功"""
    try:
        from pillow_heif import register_heif_opener
        register_heif_opener()
        return True
    except ImportError:
        # 沒有 HEIC 解碼器時，.heic 檔會以解碼錯誤回報，不影響其他檔案
        logger.debug("pillow_heif not installed, HEIC files will fail to decode")
        return False
