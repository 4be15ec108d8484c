"""
PDF page rasterization for receipt scanning.

Vision models only accept images, so PDF receipts are rendered page by page
to JPEG with PyMuPDF and encoded with Pillow.
"""

from io import BytesIO
import fitz  # PyMuPDF
from PIL import Image
from loguru import logger
from ..core.config import settings
from ..core.errors import PageNotFound, RenderError


class PageRasterizer:
    def __init__(self, scale: float | None = None, jpeg_quality: int | None = None):
        self.scale = scale if scale is not None else settings.pdf_render_scale
        self.jpeg_quality = jpeg_quality if jpeg_quality is not None else settings.pdf_jpeg_quality

    @staticmethod
    def _open(document: bytes) -> fitz.Document:
        try:
            doc = fitz.open(stream=document, filetype="pdf")
        except Exception as e:
            raise RenderError() from e
        # MuPDF "repairs" some garbage into a zero-page document
        if doc.needs_pass or doc.page_count == 0:
            doc.close()
            raise RenderError()
        return doc

    def render_page(self, document: bytes, page_number: int, scale: float | None = None) -> bytes:
        """
        Render a 1-indexed PDF page to JPEG bytes.

        Raises:
            RenderError: document is corrupt, encrypted, or the page fails to render
            PageNotFound: page_number is outside the document
        """
        scale = scale if scale is not None else self.scale
        if scale <= 0:
            raise ValueError(f"Render scale must be positive, got {scale}")
        doc = self._open(document)
        try:
            if page_number < 1 or page_number > doc.page_count:
                raise PageNotFound(f"PDF has {doc.page_count} page(s); page {page_number} does not exist.")

            try:
                page = doc[page_number - 1]
                pix = page.get_pixmap(matrix=fitz.Matrix(scale, scale), alpha=False)
                image = Image.frombytes("RGB", (pix.width, pix.height), pix.samples)
            except Exception as e:
                raise RenderError() from e

            out = BytesIO()
            image.save(out, format="JPEG", quality=self.jpeg_quality)
            return out.getvalue()
        finally:
            doc.close()

    def rasterize(self, document: bytes, page_number: int, scale: float | None = None) -> bytes | None:
        """Render a page to JPEG, or return None when it cannot be rendered"""
        try:
            jpeg = self.render_page(document, page_number, scale)
        except (RenderError, PageNotFound) as e:
            logger.warning(
                "Failed to render PDF page {}: {}", page_number, e,
                cause=repr(e.__cause__) if e.__cause__ else None,
            )
            return None

        logger.debug("Rendered PDF page", page=page_number, jpeg_bytes=len(jpeg))
        return jpeg

    def page_count(self, document: bytes) -> int:
        """Number of pages, or 0 when the document cannot be read (not 'empty')"""
        try:
            doc = self._open(document)
        except RenderError:
            return 0
        try:
            return doc.page_count
        finally:
            doc.close()
