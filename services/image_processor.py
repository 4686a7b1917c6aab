import asyncio
from io import BytesIO
from typing import List

from PIL import Image
from starlette.concurrency import run_in_threadpool

from core.exceptions import ImageSizeError, ImageProcessingError
from core.logger import app_logger

MIN_IMAGE_BYTES = 50_000
MAX_IMAGE_BYTES = 5_000_000
MAX_DIMENSION = 600
JPEG_QUALITY = 75


def target_size(width: int, height: int, max_dimension: int = MAX_DIMENSION):
    """Fit (width, height) inside a max_dimension box, keeping the aspect ratio. Never upscales."""
    if width <= max_dimension and height <= max_dimension:
        return width, height
    if width > height:
        return max_dimension, round(height * max_dimension / width)
    return round(width * max_dimension / height), max_dimension


class ImageProcessor:

    def __init__(self, min_bytes: int = MIN_IMAGE_BYTES, max_bytes: int = MAX_IMAGE_BYTES,
                 max_dimension: int = MAX_DIMENSION, quality: int = JPEG_QUALITY):
        self.min_bytes = min_bytes
        self.max_bytes = max_bytes
        self.max_dimension = max_dimension
        self.quality = quality

    def check_size(self, data: bytes):
        if len(data) < self.min_bytes:
            raise ImageSizeError(
                f"Image is too small. Please upload a larger image (minimum {self.min_bytes // 1000}KB)."
            )
        if len(data) > self.max_bytes:
            raise ImageSizeError(
                f"Image is too large. Please upload a smaller image (maximum {self.max_bytes // 1_000_000}MB)."
            )

    def process(self, data: bytes) -> bytes:
        """Validate and re-encode one upload as a bounded JPEG."""
        self.check_size(data)

        try:
            with Image.open(BytesIO(data)) as image:
                width, height = image.size
                app_logger.debug(
                    f"Original image: {width}x{height} {image.format}, {len(data)} bytes"
                )

                size = target_size(width, height, self.max_dimension)
                if image.mode != "RGB":
                    image = image.convert("RGB")
                if size != (width, height):
                    image = image.resize(size, Image.LANCZOS)

                out = BytesIO()
                image.save(
                    out,
                    format="JPEG",
                    quality=self.quality,
                    subsampling="4:2:0",
                    progressive=True,
                    optimize=True,
                )
        except Exception as e:
            raise ImageProcessingError(f"Failed to process image: {e}") from e

        processed = out.getvalue()
        app_logger.debug(f"Processed image: {size[0]}x{size[1]}, {len(processed)} bytes")
        return processed

    async def process_many(self, images: List[bytes]) -> List[bytes]:
        # one bad image fails the whole batch
        return list(await asyncio.gather(
            *(run_in_threadpool(self.process, data) for data in images)
        ))
