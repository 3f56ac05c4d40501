"""photo-hash — 掃描資料夾並輸出每張圖片的感知指紋 (perceptual fingerprint)"""

__version__ = "1.0.0"
