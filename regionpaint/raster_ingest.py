"""Raster ingestion for edge maps, normal maps and photographs."""
from pathlib import Path
from typing import Sequence, Tuple, Union
import numpy as np
from PIL import Image
from PIL import ImageOps
from skimage.util import img_as_ubyte

from regionpaint.types import MalformedInputError, RegionPaintError


def as_rgb_array(image: np.ndarray) -> np.ndarray:
    """
    Normalize an image array to HxWx3 uint8.

    Grayscale input is stacked to three channels, alpha is dropped and
    float input in [0, 1] is rescaled to [0, 255].

    Args:
        image: Image array (H, W), (H, W, 3) or (H, W, 4)

    Returns:
        Contiguous uint8 array of shape (H, W, 3)

    Raises:
        MalformedInputError: If the array cannot be read as an RGB raster
    """
    image = np.asarray(image)

    if image.ndim == 2:
        image = np.stack([image] * 3, axis=-1)

    if image.ndim != 3:
        raise MalformedInputError(f"Expected 3D array, got {image.ndim}D")

    if image.shape[2] < 3:
        raise MalformedInputError(f"Expected at least 3 channels, got {image.shape[2]}")

    rgb = image[..., :3]

    if rgb.dtype != np.uint8:
        if np.issubdtype(rgb.dtype, np.floating):
            if rgb.size and (rgb.min() < 0.0 or rgb.max() > 1.0):
                raise MalformedInputError("Float images must be in range [0, 1]")
            rgb = img_as_ubyte(rgb)
        else:
            if rgb.size and (rgb.min() < 0 or rgb.max() > 255):
                raise MalformedInputError("Integer images must be in range [0, 255]")
            rgb = rgb.astype(np.uint8)

    return np.ascontiguousarray(rgb)


def from_flat_buffer(data: Sequence[int], width: int, height: int) -> np.ndarray:
    """
    Reshape a row-major interleaved pixel buffer (e.g. canvas RGBA data).

    The channel count is inferred from the buffer length.

    Args:
        data: Flat buffer of width * height * channels values
        width: Image width
        height: Image height

    Returns:
        HxWx3 uint8 array
    """
    buffer = np.asarray(data)
    total = width * height

    if total <= 0:
        raise MalformedInputError(f"Image has zero area: {width}x{height}")

    if buffer.size % total != 0:
        raise MalformedInputError(
            f"Buffer of {buffer.size} values does not match {width}x{height}"
        )

    channels = buffer.size // total
    return as_rgb_array(buffer.reshape(height, width, channels))


def load_image(path: Union[str, Path]) -> np.ndarray:
    """
    Load an image file as HxWx3 uint8 RGB.

    Args:
        path: Path to image file

    Returns:
        RGB array

    Raises:
        FileNotFoundError: If file doesn't exist
        RegionPaintError: If file cannot be loaded
    """
    path = Path(path)

    if not path.exists():
        raise FileNotFoundError(f"Image file not found: {path}")

    if not path.is_file():
        raise RegionPaintError(f"Path is not a file: {path}")

    try:
        with Image.open(path) as img:
            # Apply EXIF orientation transformation to handle rotation
            img = ImageOps.exif_transpose(img)
            if img.mode != 'RGB':
                img = img.convert('RGB')
            return np.array(img, dtype=np.uint8)
    except (IOError, OSError) as e:
        raise RegionPaintError(f"Failed to load image {path}: {e}") from e


def load_image_pair(
    edge_path: Union[str, Path],
    normal_path: Union[str, Path]
) -> Tuple[np.ndarray, np.ndarray]:
    """Load an edge map and normal map, checking they share dimensions."""
    edge = load_image(edge_path)
    normal = load_image(normal_path)

    if edge.shape[:2] != normal.shape[:2]:
        raise MalformedInputError(
            f"Edge map {edge.shape[1]}x{edge.shape[0]} and normal map "
            f"{normal.shape[1]}x{normal.shape[0]} differ in size"
        )

    return edge, normal


def save_image(image: np.ndarray, path: Union[str, Path]) -> None:
    """Write an RGB or RGBA uint8 array to disk."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    try:
        Image.fromarray(np.asarray(image, dtype=np.uint8)).save(path)
    except (IOError, OSError) as e:
        raise RegionPaintError(f"Failed to save image {path}: {e}") from e
