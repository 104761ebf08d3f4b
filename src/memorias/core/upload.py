"""Media validation, resizing and storage for memory photos and videos."""
import io
import time
import uuid
import logging
from pathlib import Path
from typing import List, Optional, Protocol, Tuple

import httpx
from PIL import Image, UnidentifiedImageError

from .config import Config
from .models import MemoryValidationError, RejectedFile, StorageError, UploadBatchResult

logger = logging.getLogger(__name__)

IMAGE_TYPES = {"image/jpeg", "image/jpg", "image/png", "image/gif", "image/webp"}
VIDEO_TYPES = {"video/mp4", "video/mov", "video/quicktime", "video/avi", "video/webm"}
FOLDERS = ("fotos", "videos")

UPLOAD_ERROR_MESSAGE = "Erro ao fazer upload do arquivo. Tente novamente."
IMAGE_TOO_LARGE_MESSAGE = "Imagem com dimensões grandes demais para ser processada."

# Formats Pillow re-encodes with a quality setting
LOSSY_FORMATS = {"JPEG", "WEBP"}


class MediaStorage(Protocol):
    """Object storage for uploaded media."""

    def store(self, path: str, data: bytes, content_type: str) -> str:
        """Store `data` under `path` and return its public URL."""
        ...


class LocalMediaStorage:
    """Stores media under a local directory served at `{public_base_url}/media`."""

    def __init__(self, media_dir: str, public_base_url: str):
        self.media_dir = Path(media_dir)
        self.public_base_url = public_base_url.rstrip("/")

    def store(self, path: str, data: bytes, content_type: str) -> str:
        target = self.media_dir / path
        target.parent.mkdir(parents=True, exist_ok=True)
        # Generated names never collide; refuse to overwrite anyway
        with open(target, "xb") as f:
            f.write(data)
        return f"{self.public_base_url}/media/{path}"


class SupabaseMediaStorage:
    """Stores media in a Supabase Storage bucket."""

    def __init__(self, url: str, api_key: str, bucket: str, timeout: float = 30.0,
                 transport: Optional[httpx.BaseTransport] = None):
        self.url = url.rstrip("/")
        self.bucket = bucket
        self.client = httpx.Client(
            base_url=f"{self.url}/storage/v1",
            headers={
                "apikey": api_key,
                "Authorization": f"Bearer {api_key}",
            },
            timeout=timeout,
            transport=transport,
        )

    def public_url(self, path: str) -> str:
        return f"{self.url}/storage/v1/object/public/{self.bucket}/{path}"

    def store(self, path: str, data: bytes, content_type: str) -> str:
        response = self.client.post(
            f"/object/{self.bucket}/{path}",
            content=data,
            headers={
                "Content-Type": content_type,
                "Cache-Control": "max-age=3600",
                "x-upsert": "false",
            },
        )
        response.raise_for_status()
        return self.public_url(path)


def generate_file_name(original_name: str) -> str:
    """Collision-resistant name keeping the original extension."""
    ext = Path(original_name).suffix.lstrip(".").lower()
    name = f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:12]}"
    return f"{name}.{ext}" if ext else name


def resize_image(data: bytes, max_width: int = 1920, max_height: int = 1080,
                 quality: float = 0.8) -> bytes:
    """Downscale an image to fit the bounds, keeping its aspect ratio and format.

    Landscape images are bounded by width, portrait and square ones by height.
    Images already within bounds, animated images and undecodable data are
    returned unchanged. Images whose pixel count exceeds Pillow's
    decompression bomb limit are rejected with MemoryValidationError.
    """
    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except Image.DecompressionBombError as e:
        logger.warning(f"Image rejected as a decompression bomb: {e}")
        raise MemoryValidationError(IMAGE_TOO_LARGE_MESSAGE) from e
    except (UnidentifiedImageError, OSError) as e:
        logger.warning(f"Could not decode image for resizing, keeping original: {e}")
        return data

    if getattr(image, "is_animated", False):
        return data

    image_format = image.format
    width, height = image.size
    if width > height:
        if width <= max_width:
            return data
        new_size = (max_width, max(1, round(height * max_width / width)))
    else:
        if height <= max_height:
            return data
        new_size = (max(1, round(width * max_height / height)), max_height)

    resized = image.resize(new_size, Image.Resampling.LANCZOS)
    if image_format == "JPEG" and resized.mode not in ("RGB", "L"):
        resized = resized.convert("RGB")

    save_kwargs = {}
    if image_format in LOSSY_FORMATS:
        save_kwargs["quality"] = int(round(quality * 100))

    output = io.BytesIO()
    resized.save(output, format=image_format, **save_kwargs)
    logger.info(f"Image resized from {width}x{height} to {new_size[0]}x{new_size[1]}")
    return output.getvalue()


class UploadService:
    """Validates media files and stores them through a MediaStorage."""

    def __init__(self, storage: MediaStorage, config: Config):
        self.storage = storage
        self.config = config

    def validate_image_file(self, content_type: str, size: int):
        """Raise MemoryValidationError unless the file is an accepted image."""
        if content_type not in IMAGE_TYPES:
            raise MemoryValidationError("Tipo de arquivo não suportado. Use JPEG, PNG, GIF ou WebP.")
        if size > self.config.max_image_size:
            raise MemoryValidationError(
                f"Arquivo muito grande. O tamanho máximo é {self.config.max_image_size // (1024 * 1024)}MB.")

    def validate_video_file(self, content_type: str, size: int):
        """Raise MemoryValidationError unless the file is an accepted video."""
        if content_type not in VIDEO_TYPES:
            raise MemoryValidationError("Tipo de arquivo não suportado. Use MP4, MOV, AVI ou WebM.")
        if size > self.config.max_video_size:
            raise MemoryValidationError(
                f"Arquivo muito grande. O tamanho máximo é {self.config.max_video_size // (1024 * 1024)}MB.")

    def is_valid_image_file(self, content_type: str, size: int) -> bool:
        try:
            self.validate_image_file(content_type, size)
            return True
        except MemoryValidationError:
            return False

    def is_valid_video_file(self, content_type: str, size: int) -> bool:
        try:
            self.validate_video_file(content_type, size)
            return True
        except MemoryValidationError:
            return False

    def _validate(self, folder: str, content_type: str, size: int):
        if folder == "fotos":
            self.validate_image_file(content_type, size)
        elif folder == "videos":
            self.validate_video_file(content_type, size)
        else:
            raise MemoryValidationError(f"Pasta inválida: {folder}. Use 'fotos' ou 'videos'.")

    def upload_file(self, filename: str, content_type: str, data: bytes, folder: str) -> str:
        """Validate, optionally resize, and store one file. Returns its public URL."""
        self._validate(folder, content_type, len(data))

        if folder == "fotos" and self.config.resize_images:
            data = resize_image(
                data,
                max_width=self.config.image_max_width,
                max_height=self.config.image_max_height,
                quality=self.config.image_quality,
            )

        path = f"{folder}/{generate_file_name(filename)}"
        try:
            url = self.storage.store(path, data, content_type)
        except (httpx.HTTPError, OSError) as e:
            logger.error(f"Upload of {filename} to {path} failed: {e}")
            raise StorageError(UPLOAD_ERROR_MESSAGE) from e

        logger.info(f"Uploaded {filename} as {path}")
        return url

    def upload_files(self, files: List[Tuple[str, str, bytes]], folder: str) -> UploadBatchResult:
        """Upload (filename, content_type, data) files independently of each other."""
        result = UploadBatchResult()
        for filename, content_type, data in files:
            try:
                result.urls.append(self.upload_file(filename, content_type, data, folder))
            except MemoryValidationError as e:
                logger.info(f"File {filename} rejected: {e}")
                result.rejected.append(RejectedFile(filename=filename, reason=str(e)))
            except StorageError as e:
                result.failed.append(RejectedFile(filename=filename, reason=str(e)))
        return result


def create_upload_service(config: Config, transport: Optional[httpx.BaseTransport] = None) -> UploadService:
    """Build the upload service for `config.storage_backend`."""
    if config.storage_backend == "supabase":
        storage = SupabaseMediaStorage(
            config.supabase_url,
            config.supabase_key,
            config.storage_bucket,
            timeout=config.request_timeout,
            transport=transport,
        )
    else:
        storage = LocalMediaStorage(config.media_dir, config.public_base_url)
    return UploadService(storage, config)
