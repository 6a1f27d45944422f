SUPPORTED_PILLOW_EXTENSIONS = {".jpg", ".jpeg", ".png", ".webp", ".bmp"}

SUPPORTED_TIFF_EXTENSIONS = {".tif", ".tiff"}

SUPPORTED_RAW_EXTENSIONS = {
    ".dng",
    ".cr2",
    ".cr3",
    ".nef",
    ".arw",
    ".raf",
    ".orf",
    ".rw2",
    ".pef",
    ".srw",
}

SUPPORTED_EXTENSIONS = SUPPORTED_PILLOW_EXTENSIONS | SUPPORTED_TIFF_EXTENSIONS | SUPPORTED_RAW_EXTENSIONS
