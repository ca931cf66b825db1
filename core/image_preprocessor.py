"""Skin lesion image loading, validation, and normalization."""

import io
import logging
from pathlib import Path
from typing import Tuple

import numpy as np
from PIL import Image, UnidentifiedImageError

from core.errors import DecodeError, UnsupportedFormatError

logger = logging.getLogger(__name__)

# Model input contract
MODEL_INPUT_SIZE: Tuple[int, int] = (224, 224)
IMAGENET_MEAN = [0.485, 0.456, 0.406]
IMAGENET_STD = [0.229, 0.224, 0.225]

# Pillow modes that convert cleanly to RGB
SUPPORTED_MODES = {"RGB", "RGBA", "L", "LA", "P", "PA", "CMYK", "YCbCr"}
MIN_IMAGE_SIDE = 32


class ImagePreprocessor:
    """Turns an image reference into the tensor the skin classifier expects."""

    @staticmethod
    def open_image(image_ref: str) -> Image.Image:
        """Open and fully decode an image.

        Raises DecodeError when the file is missing or unreadable and
        UnsupportedFormatError when it exceeds Pillow's pixel limit.
        """
        path = Path(image_ref)
        if not path.is_file():
            raise DecodeError(str(image_ref), "Image not found")
        try:
            img = Image.open(path)
            img.load()
        except Image.DecompressionBombError as e:
            raise UnsupportedFormatError(str(image_ref), f"Image too large ({e})") from e
        except (UnidentifiedImageError, OSError) as e:
            raise DecodeError(str(image_ref), f"Cannot decode image ({e})") from e
        return img

    @staticmethod
    def load_image(image_ref: str) -> np.ndarray:
        """Load an image file as a numpy array."""
        return np.array(ImagePreprocessor.open_image(image_ref))

    @staticmethod
    def prepare(image_ref: str) -> "torch.Tensor":
        """Preprocess a lesion photograph for the classifier.

        Returns tensor of shape (1, 3, 224, 224) with ImageNet normalization.
        """
        from torchvision import transforms

        img = ImagePreprocessor.open_image(image_ref)

        if img.mode not in SUPPORTED_MODES:
            raise UnsupportedFormatError(str(image_ref), f"Unsupported image mode {img.mode}")
        width, height = img.size
        if width < MIN_IMAGE_SIDE or height < MIN_IMAGE_SIDE:
            raise UnsupportedFormatError(
                str(image_ref),
                f"Image too small ({width}x{height}, minimum {MIN_IMAGE_SIDE}px)",
            )

        img = img.convert("RGB")

        transform = transforms.Compose([
            transforms.Resize(MODEL_INPUT_SIZE),
            transforms.ToTensor(),
            transforms.Normalize(mean=IMAGENET_MEAN, std=IMAGENET_STD),
        ])

        tensor = transform(img)
        logger.debug("Prepared %s (%dx%d, mode %s)", image_ref, width, height, img.mode)
        return tensor.unsqueeze(0)  # Add batch dimension

    @staticmethod
    def create_thumbnail(image_ref: str, size: Tuple[int, int] = (128, 128)) -> bytes:
        """Create a JPEG thumbnail and return as bytes."""
        img = ImagePreprocessor.open_image(image_ref)

        img.thumbnail(size, Image.Resampling.LANCZOS)
        if img.mode != "RGB":
            img = img.convert("RGB")

        buffer = io.BytesIO()
        img.save(buffer, format="JPEG", quality=80)
        return buffer.getvalue()
