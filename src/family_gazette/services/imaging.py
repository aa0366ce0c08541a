"""Photo re-encoding ahead of upload."""

import io
from dataclasses import dataclass, replace
from typing import Protocol

from PIL import Image, UnidentifiedImageError

from family_gazette.domain.content import UploadAsset
from family_gazette.errors import ValidationError

_MIME_BY_FORMAT = {"JPEG": "image/jpeg", "PNG": "image/png", "TIFF": "image/tiff"}
_COLOR_SPACE_BY_MODE = {
    "CMYK": "CMYK",
    "RGB": "RGB",
    "RGBA": "RGB",
    "P": "RGB",
    "L": "GRAY",
    "LA": "GRAY",
}


@dataclass(frozen=True)
class EncodedPhoto:
    """Re-encoded photo bytes with the properties read back from them."""

    data: bytes
    mime_type: str
    width: int
    height: int
    dpi: int
    color_space: str


@dataclass(frozen=True)
class PhotoFacts:
    """Properties read from an image header without decoding pixels."""

    mime_type: str | None
    width: int
    height: int
    dpi: int
    color_space: str


class PhotoEncoder(Protocol):
    """Interface for re-encoding photos before transmission."""

    def encode(self, data: bytes, *, quality: int) -> EncodedPhoto:
        """Re-encode photo bytes at the given quality."""


@dataclass
class PillowPhotoEncoder(PhotoEncoder):
    """Pillow-backed encoder that keeps format, density and ICC profile.

    JPEG input is re-compressed at ``quality`` without chroma subsampling;
    PNG and TIFF are re-saved losslessly.
    """

    subsampling: int = 0

    def encode(self, data: bytes, *, quality: int) -> EncodedPhoto:
        """Re-encode photo bytes, preserving resolution metadata."""
        try:
            image = Image.open(io.BytesIO(data))
            image.load()
        except (UnidentifiedImageError, OSError) as exc:
            raise ValidationError(
                code="UNSUPPORTED_TYPE", message="File is not a readable image"
            ) from exc

        with image:
            image_format = image.format or "JPEG"
            dpi = _read_dpi(image)
            options: dict[str, object] = {"format": image_format}
            if dpi:
                options["dpi"] = (dpi, dpi)
            icc_profile = image.info.get("icc_profile")
            if icc_profile:
                options["icc_profile"] = icc_profile
            if image_format == "JPEG":
                options["quality"] = quality
                options["subsampling"] = self.subsampling
                exif = image.info.get("exif")
                if exif:
                    options["exif"] = exif
            output = io.BytesIO()
            image.save(output, **options)
            width, height = image.size
            color_space = _COLOR_SPACE_BY_MODE.get(image.mode, image.mode)

        return EncodedPhoto(
            data=output.getvalue(),
            mime_type=_MIME_BY_FORMAT.get(image_format, "application/octet-stream"),
            width=width,
            height=height,
            dpi=dpi,
            color_space=color_space,
        )


def read_photo_facts(data: bytes) -> PhotoFacts | None:
    """Read format, size, density and color mode from image bytes.

    Returns ``None`` when Pillow cannot identify the data.
    """
    try:
        with Image.open(io.BytesIO(data)) as image:
            width, height = image.size
            return PhotoFacts(
                mime_type=_MIME_BY_FORMAT.get(image.format or ""),
                width=width,
                height=height,
                dpi=_read_dpi(image),
                color_space=_COLOR_SPACE_BY_MODE.get(image.mode, image.mode),
            )
    except (UnidentifiedImageError, OSError):
        return None


def with_file_facts(asset: UploadAsset) -> UploadAsset:
    """Return ``asset`` carrying the properties its bytes actually have.

    Declared values are kept only where the file reports nothing.
    """
    facts = read_photo_facts(asset.data)
    if facts is None:
        return asset
    return replace(
        asset,
        mime_type=facts.mime_type or asset.mime_type,
        dpi=facts.dpi or asset.dpi,
        color_space=facts.color_space or asset.color_space,
        width=facts.width or asset.width,
        height=facts.height or asset.height,
    )


def _read_dpi(image: Image.Image) -> int:
    """Return the horizontal density of an image in dots per inch."""
    density = image.info.get("dpi")
    if not density:
        return 0
    return int(round(float(density[0])))
