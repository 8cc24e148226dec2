"""OCR engine for extracting text from images using EasyOCR."""

import logging
import warnings
from pathlib import Path
from typing import Optional, Union

from PIL import Image

try:
    import easyocr
    import numpy as np
    import torch
    has_easyocr = True

    # Suppress PyTorch pin_memory warnings on MPS (Apple Silicon)
    warnings.filterwarnings('ignore', message='.*pin_memory.*', category=UserWarning)
    warnings.filterwarnings('ignore', message='.*not supported on MPS.*', category=UserWarning)
except ImportError:
    easyocr = None
    np = None
    torch = None
    has_easyocr = False

# Global reader instance (initialized lazily)
EASYOCR_READER = None
logger = logging.getLogger(__name__)


class OCRError(RuntimeError):
    """Raised when the OCR engine cannot be initialized or fails on an image."""


def initialize_reader(model_dir: Optional[Path] = None, gpu: Optional[bool] = None) -> None:
    """
    Initialize the EasyOCR reader once per process.

    Models are looked up in model_dir and downloaded there if absent.

    Args:
        model_dir: Directory holding the detection/recognition models (default: EasyOCR's own)
        gpu: Use GPU acceleration (default: auto-detect)
    """
    global EASYOCR_READER

    if not has_easyocr:
        raise OCRError("easyocr is not installed. Please install it with: pip install easyocr")

    if EASYOCR_READER is not None:
        return

    if gpu is None:
        if torch.cuda.is_available():
            gpu = True
            logger.info("EasyOCR: Using CUDA (NVIDIA/ROCm GPU)")
        elif hasattr(torch.backends, 'mps') and torch.backends.mps.is_available():
            gpu = True
            logger.info("EasyOCR: Using MPS (Apple Silicon GPU)")
        else:
            gpu = False
            logger.info("EasyOCR: Using CPU (No GPU detected)")
    else:
        logger.info(f"EasyOCR: Using {'GPU' if gpu else 'CPU'} (Manual override)")

    kwargs = {}
    if model_dir is not None:
        model_dir.mkdir(parents=True, exist_ok=True)
        kwargs['model_storage_directory'] = str(model_dir)
        logger.info(f"EasyOCR: models in {model_dir} (downloaded on first use)")

    try:
        EASYOCR_READER = easyocr.Reader(['en'], gpu=gpu, download_enabled=True, **kwargs)
    except Exception as e:
        # Fallback to CPU if GPU initialization fails
        if gpu:
            logger.warning(f"EasyOCR: GPU initialization failed ({e}), falling back to CPU")
            try:
                EASYOCR_READER = easyocr.Reader(['en'], gpu=False, download_enabled=True, **kwargs)
                return
            except Exception as e2:
                raise OCRError(f"Failed to initialize EasyOCR (CPU fallback also failed): {e2}") from e2
        raise OCRError(f"Failed to initialize EasyOCR: {e}") from e


def _join_ocr_results(results, min_confidence: float = 0.0) -> str:
    """Join raw EasyOCR (bbox, text, confidence) results into one line of text."""
    words = []
    for _bbox, text, confidence in results:
        if confidence >= min_confidence:
            text_clean = text.strip()
            if text_clean:
                words.append(text_clean)
    return ' '.join(words)


def load_image(source: Union[Path, "Image.Image"]) -> "Image.Image":
    """Decode an image file (or pass through an image) as RGB."""
    if isinstance(source, Path):
        with Image.open(source) as opened:
            return opened.convert('RGB')
    image = source
    if image.mode != 'RGB':
        image = image.convert('RGB')
    return image


def read_text(source: Union[Path, "Image.Image"], min_confidence: float = 0.0) -> str:
    """
    Run OCR over an image file or PIL image and return all recognized text.

    Raises:
        OCRError: If the engine is unavailable or recognition fails
        OSError: If the image file cannot be decoded
    """
    if EASYOCR_READER is None:
        initialize_reader()

    image = load_image(source)
    try:
        results = EASYOCR_READER.readtext(np.array(image))
    except Exception as e:
        raise OCRError(f"OCR failed: {e}") from e
    return _join_ocr_results(results, min_confidence=min_confidence)
