from __future__ import annotations
import base64
import binascii
import io
import logging
import shutil
from pathlib import Path
import httpx
from PIL import Image, UnidentifiedImageError
from virtual_staging.core.errors import ImageDecodeError, ImageStoreError
from virtual_staging.core.workflow import ImageRef

log = logging.getLogger(__name__)

_EXTENSIONS = {"JPEG": ".jpg", "PNG": ".png", "WEBP": ".webp"}


def probe(data: bytes) -> tuple[int, int, str]:
    """Width, height and file extension of encoded image bytes."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            return img.width, img.height, _EXTENSIONS.get(img.format or "", ".img")
    except (UnidentifiedImageError, OSError) as e:
        raise ImageDecodeError(f"Not a readable image: {e}") from e


def decode_data_url(source: str) -> bytes:
    _, _, payload = source.partition(",")
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ImageDecodeError("Malformed base64 image data") from e


class ImageStore:
    """Stable, retrievable image URLs for run inputs and stage outputs."""

    def ingest(self, run_id: str, source: str, name: str) -> ImageRef:
        """Copy an image (http(s) URL, data URL or one of our own URLs) into the store."""
        raise NotImplementedError

    def ingest_bytes(self, run_id: str, data: bytes, name: str) -> ImageRef:
        raise NotImplementedError

    def load(self, ref: ImageRef) -> bytes:
        raise NotImplementedError

    def discard(self, run_id: str) -> None:
        """Remove every image stored for a run."""
        raise NotImplementedError


class LocalImageStore(ImageStore):
    """Images on a local (or mounted) directory served under a public base URL."""

    def __init__(
        self,
        root: str | Path,
        public_base_url: str,
        *,
        timeout: float = 60.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self.root = Path(root)
        self.public_base_url = public_base_url.rstrip("/")
        self._client = httpx.Client(timeout=timeout, transport=transport, follow_redirects=True)

    def _path_for(self, url: str) -> Path | None:
        prefix = self.public_base_url + "/"
        if not url.startswith(prefix):
            return None
        path = (self.root / url[len(prefix):]).resolve()
        if self.root.resolve() not in path.parents:
            raise ImageStoreError(f"Image URL escapes the store: {url}")
        return path

    def fetch(self, source: str) -> bytes:
        if source.startswith("data:"):
            return decode_data_url(source)
        local = self._path_for(source)
        if local is not None:
            try:
                return local.read_bytes()
            except OSError as e:
                raise ImageStoreError(f"Cannot read {local}: {e}") from e
        if not source.startswith(("http://", "https://")):
            raise ImageStoreError(f"Unsupported image source: {source[:64]}")
        try:
            r = self._client.get(source)
            r.raise_for_status()
        except httpx.HTTPError as e:
            raise ImageStoreError(f"Cannot download {source}: {e}") from e
        return r.content

    def ingest(self, run_id: str, source: str, name: str) -> ImageRef:
        return self.ingest_bytes(run_id, self.fetch(source), name)

    def ingest_bytes(self, run_id: str, data: bytes, name: str) -> ImageRef:
        width, height, ext = probe(data)
        rel = f"{run_id}/{name}{ext}"
        path = self.root / rel
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as e:
            raise ImageStoreError(f"Cannot write {path}: {e}") from e
        log.debug("Stored image %s (%dx%d)", rel, width, height, extra={"run_id": run_id})
        return ImageRef(url=f"{self.public_base_url}/{rel}", width=width, height=height)

    def load(self, ref: ImageRef) -> bytes:
        return self.fetch(ref.url)

    def discard(self, run_id: str) -> None:
        path = self.root / run_id
        if path.resolve().parent != self.root.resolve():
            raise ImageStoreError(f"Refusing to remove {path}")
        shutil.rmtree(path, ignore_errors=True)
