"""
Verification Badge

Cosmetic QR badge pointing readers at the verification page. The badge is
part of the document content once added, so it MUST run before the leaf
hash is computed:

    decorate -> canonicalize_for_hash -> hash -> ... -> embed proof

- PDF:  QR stamped onto the last page (pypdf), marked with the
        /DocAnchorBadge document-info key.
- DOCX: PNG part word/media/docanchor-badge.png, an image relationship in
        word/_rels/document.xml.rels and one paragraph before the body's
        section properties, marked by the drawing name "docanchor-badge".

Both decorations are idempotent. Other containers are returned unchanged.
"""

from __future__ import annotations

import io
import logging
from xml.sax.saxutils import escape, quoteattr

import qrcode
from PIL import Image
from pypdf import PdfReader, PdfWriter, Transformation

from .base import is_ooxml_package
from .ooxml import CONTENT_TYPES_PART, fixed_info, insert_before, read_package, write_package


logger = logging.getLogger(__name__)

BADGE_MARKER = "docanchor-badge"
PDF_BADGE_KEY = "/DocAnchorBadge"

DOCX_DOCUMENT_PART = "word/document.xml"
DOCX_RELS_PART = "word/_rels/document.xml.rels"
DOCX_BADGE_PART = "word/media/docanchor-badge.png"
BADGE_REL_ID = "rIdDocAnchorBadge"
IMAGE_REL_TYPE = "http://schemas.openxmlformats.org/officeDocument/2006/relationships/image"

INCH_TO_EMU = 914400
BADGE_SIZE_INCHES = 0.8
PDF_MARGIN_POINTS = 24.0

BADGE_CAPTION = "Scan to verify this document"


def make_qr_png(url: str, box_size: int = 8, border: int = 2) -> bytes:
    """Render ``url`` as a QR code PNG."""
    qr = qrcode.QRCode(
        version=None,  # Auto-determine version
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=box_size,
        border=border,
    )
    qr.add_data(url)
    qr.make(fit=True)
    img = qr.make_image(fill_color="#0F1729", back_color="white")

    buffer = io.BytesIO()
    img.save(buffer)
    return buffer.getvalue()


def _qr_pdf_page(png_bytes: bytes):
    img = Image.open(io.BytesIO(png_bytes)).convert("RGB")
    pdf_buffer = io.BytesIO()
    img.save(pdf_buffer, format="PDF", resolution=72)
    return PdfReader(io.BytesIO(pdf_buffer.getvalue())).pages[0]


def is_pdf(data: bytes) -> bool:
    return data.lstrip()[:5] == b"%PDF-"


class BadgeDecorator:
    """Adds the verification badge to PDF and DOCX documents."""

    def __init__(self, verification_url: str, size_inches: float = BADGE_SIZE_INCHES) -> None:
        self.verification_url = verification_url
        self.size_inches = size_inches

    def decorate(self, data: bytes) -> bytes:
        """Return ``data`` with the badge added, or unchanged for unsupported formats."""
        if is_pdf(data):
            return self.decorate_pdf(data)
        if is_ooxml_package(data):
            return self.decorate_docx(data)
        logger.debug("No badge support for this container; leaving it unchanged")
        return data

    # -- PDF ---------------------------------------------------------------

    def decorate_pdf(self, data: bytes) -> bytes:
        reader = PdfReader(io.BytesIO(data))
        if reader.metadata and PDF_BADGE_KEY in reader.metadata:
            return data

        writer = PdfWriter(clone_from=reader)
        page = writer.pages[-1]
        qr_page = _qr_pdf_page(make_qr_png(self.verification_url))

        target = self.size_inches * 72
        scale = target / float(qr_page.mediabox.width)
        box = page.mediabox
        tx = float(box.right) - target - PDF_MARGIN_POINTS
        ty = float(box.bottom) + PDF_MARGIN_POINTS
        page.merge_transformed_page(
            qr_page,
            Transformation().scale(scale, scale).translate(tx, ty),
        )

        writer.add_metadata({PDF_BADGE_KEY: self.verification_url})
        out = io.BytesIO()
        writer.write(out)
        return out.getvalue()

    # -- DOCX --------------------------------------------------------------

    def decorate_docx(self, data: bytes) -> bytes:
        entries = read_package(data)
        names = {info.filename for info, _ in entries}
        if DOCX_DOCUMENT_PART not in names:
            logger.debug("OOXML package is not a word document; no badge added")
            return data
        document = next(content for info, content in entries if info.filename == DOCX_DOCUMENT_PART)
        if BADGE_MARKER.encode() in document:
            return data

        relationship = (
            f'<Relationship Id="{BADGE_REL_ID}" Type="{IMAGE_REL_TYPE}" '
            f'Target="media/docanchor-badge.png"/>'
        ).encode("utf-8")

        updated = []
        for info, content in entries:
            if info.filename == DOCX_DOCUMENT_PART:
                content = self._insert_paragraph(content)
            elif info.filename == DOCX_RELS_PART:
                content = insert_before(content, b"</Relationships>", relationship)
            elif info.filename == CONTENT_TYPES_PART and b'extension="png"' not in content.lower():
                content = insert_before(
                    content, b"</Types>", b'<Default Extension="png" ContentType="image/png"/>'
                )
            updated.append((info, content))

        if DOCX_RELS_PART not in names:
            rels = (
                b'<?xml version="1.0" encoding="UTF-8" standalone="yes"?>\n'
                b'<Relationships xmlns="http://schemas.openxmlformats.org/package/2006/relationships">'
                + relationship
                + b"</Relationships>"
            )
            updated.append((fixed_info(DOCX_RELS_PART), rels))

        updated.append((fixed_info(DOCX_BADGE_PART), make_qr_png(self.verification_url)))
        return write_package(updated)

    def _insert_paragraph(self, document: bytes) -> bytes:
        paragraph = self._badge_paragraph().encode("utf-8")
        pos = document.rfind(b"<w:sectPr")
        if pos >= 0:
            return document[:pos] + paragraph + document[pos:]
        return insert_before(document, b"</w:body>", paragraph)

    def _badge_paragraph(self) -> str:
        emu = int(self.size_inches * INCH_TO_EMU)
        name = quoteattr(BADGE_MARKER)
        return (
            '<w:p><w:r><w:drawing>'
            '<wp:inline xmlns:wp="http://schemas.openxmlformats.org/drawingml/2006/wordprocessingDrawing">'
            f'<wp:extent cx="{emu}" cy="{emu}"/>'
            f'<wp:docPr id="9001" name={name}/>'
            '<a:graphic xmlns:a="http://schemas.openxmlformats.org/drawingml/2006/main">'
            '<a:graphicData uri="http://schemas.openxmlformats.org/drawingml/2006/picture">'
            '<pic:pic xmlns:pic="http://schemas.openxmlformats.org/drawingml/2006/picture">'
            f'<pic:nvPicPr><pic:cNvPr id="0" name={name}/><pic:cNvPicPr/></pic:nvPicPr>'
            '<pic:blipFill>'
            '<a:blip xmlns:r="http://schemas.openxmlformats.org/officeDocument/2006/relationships" '
            f'r:embed="{BADGE_REL_ID}"/>'
            '<a:stretch><a:fillRect/></a:stretch></pic:blipFill>'
            '<pic:spPr><a:xfrm><a:off x="0" y="0"/>'
            f'<a:ext cx="{emu}" cy="{emu}"/></a:xfrm>'
            '<a:prstGeom prst="rect"><a:avLst/></a:prstGeom></pic:spPr>'
            '</pic:pic></a:graphicData></a:graphic></wp:inline>'
            '</w:drawing></w:r>'
            f'<w:r><w:t xml:space="preserve"> {escape(BADGE_CAPTION)}: '
            f'{escape(self.verification_url)}</w:t></w:r></w:p>'
        )


__all__ = [
    "BADGE_MARKER",
    "PDF_BADGE_KEY",
    "BadgeDecorator",
    "make_qr_png",
    "is_pdf",
]
