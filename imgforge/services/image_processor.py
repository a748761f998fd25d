from io import BytesIO

from PIL import Image, ImageColor, ImageOps, UnidentifiedImageError

from imgforge.domain.errors import ImageProcessingError
from imgforge.domain.image_version import FitMode, ImageFormat
from imgforge.domain.ports import ImageInfo, ImageTransformer, ProcessingOptions
from imgforge.domain.value_objects import Resolution


class PillowImageProcessor(ImageTransformer):
    """Image transforms backed by Pillow."""

    def __init__(self, default_background: str = "#FFFFFF") -> None:
        self.default_background = default_background

    def process(self, data: bytes, options: ProcessingOptions) -> bytes:
        try:
            longest = max(options.target_width, options.target_height)
            with _open(data, svg_width=longest) as source:
                img = ImageOps.exif_transpose(source)
                img = img.convert("RGBA" if _has_alpha(img) else "RGB")

                if options.extract_region is not None:
                    box = options.extract_region.to_pixels(img.width, img.height)
                    img = img.crop(box)

                img = self._resize(img, options)
                background = options.background_color or self.default_background
                return self._encode(img, options.format, options.quality, background)
        except (UnidentifiedImageError, OSError, ValueError) as e:
            raise ImageProcessingError("process", str(e)) from e

    def compress(self, data: bytes, format: ImageFormat, quality: int) -> bytes:
        try:
            with _open(data) as source:
                img = source.convert("RGBA" if _has_alpha(source) else "RGB")
                return self._encode(img, format, quality, self.default_background)
        except (UnidentifiedImageError, OSError, ValueError) as e:
            raise ImageProcessingError("compress", str(e)) from e

    def get_info(self, data: bytes) -> ImageInfo:
        try:
            with _open(data) as img:
                dpi = img.info.get("dpi")
                return ImageInfo(
                    width=img.width,
                    height=img.height,
                    format="svg" if _is_svg(data) else (img.format or "unknown").lower(),
                    size=len(data),
                    has_alpha=_has_alpha(img),
                    color_space=img.mode,
                    density=round(dpi[0]) if dpi else None,
                )
        except (UnidentifiedImageError, OSError) as e:
            raise ImageProcessingError("get_info", str(e)) from e

    def _resize(self, img: Image.Image, options: ProcessingOptions) -> Image.Image:
        target_w, target_h = options.target_width, options.target_height
        source = Resolution(img.width, img.height)

        if options.fit == FitMode.CONTAIN:
            size = source.fit_within(target_w, target_h)
            return img.resize((size.width, size.height), Image.Resampling.LANCZOS)

        if options.fit == FitMode.COVER:
            size = source.cover(target_w, target_h)
            img = img.resize((size.width, size.height), Image.Resampling.LANCZOS)
            # Centre crop down to the exact target.
            left = max(0, (size.width - target_w) // 2)
            top = max(0, (size.height - target_h) // 2)
            return img.crop((left, top, left + min(target_w, size.width), top + min(target_h, size.height)))

        return img.resize((target_w, target_h), Image.Resampling.LANCZOS)

    def _encode(self, img: Image.Image, format: ImageFormat, quality: int, background: str) -> bytes:
        out = BytesIO()
        if format == ImageFormat.WEBP:
            img.save(out, format="WEBP", quality=quality, method=6)
        elif format == ImageFormat.JPG:
            if img.mode == "RGBA":
                img = _flatten(img, background)
            img.save(out, format="JPEG", quality=quality, optimize=True, progressive=True)
        else:
            img.save(out, format="PNG", optimize=True)
        return out.getvalue()


def _has_alpha(img: Image.Image) -> bool:
    return img.mode in ("RGBA", "LA", "PA") or (img.mode == "P" and "transparency" in img.info)


def _flatten(img: Image.Image, background: str) -> Image.Image:
    canvas = Image.new("RGB", img.size, ImageColor.getrgb(background))
    canvas.paste(img, mask=img.getchannel("A"))
    return canvas


def _is_svg(data: bytes) -> bool:
    head = data[:4096].lstrip()
    return head.startswith((b"<svg", b"<?xml")) and b"<svg" in head


def _rasterize_svg(data: bytes, width: int | None = None) -> bytes:
    """Render SVG to PNG; ``width`` scales the drawing, keeping its aspect ratio."""
    import cairosvg

    try:
        return cairosvg.svg2png(bytestring=data, output_width=width)
    except (ValueError, SyntaxError) as e:
        raise ImageProcessingError("rasterize", str(e)) from e


def _open(data: bytes, svg_width: int | None = None) -> Image.Image:
    if _is_svg(data):
        data = _rasterize_svg(data, svg_width)
    return Image.open(BytesIO(data))
