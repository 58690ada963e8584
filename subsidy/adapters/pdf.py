"""ReportLab renderer for the signed subsidy document."""

import hashlib
import logging
import os
from io import BytesIO
from typing import Any, Iterable, Optional, Tuple

from reportlab.lib.pagesizes import A4
from reportlab.lib.units import cm
from reportlab.pdfgen import canvas

from subsidy.core.collaborators import ProcessSnapshot, RenderedArtifact

logger = logging.getLogger(__name__)

LINE_HEIGHT = 0.6 * cm
MARGIN = 2 * cm


class ReportLabPdfRenderer:
    """Renders a one-document summary of the process and stores it on disk.

    The file name is ``<code>_v<version>.pdf``; the content hash is the
    SHA-256 of the PDF bytes.
    """

    def __init__(self, output_dir: str, company_name: str, company_address: Optional[str] = None):
        self.output_dir = output_dir
        self.company_name = company_name
        self.company_address = company_address

    def render(self, snapshot: ProcessSnapshot) -> RenderedArtifact:
        data = self._build(snapshot)
        content_hash = hashlib.sha256(data).hexdigest()

        os.makedirs(self.output_dir, exist_ok=True)
        path = os.path.join(self.output_dir, f"{snapshot.code}_v{snapshot.version}.pdf")
        with open(path, "wb") as f:
            f.write(data)

        logger.info("Rendered %s (%d bytes, sha256=%s)", path, len(data), content_hash)
        return RenderedArtifact(artifact_ref=path, content_hash=content_hash)

    def _build(self, snapshot: ProcessSnapshot) -> bytes:
        buf = BytesIO()
        # invariant output keeps the hash stable for identical input
        c = canvas.Canvas(buf, pagesize=A4, invariant=1)
        c.setTitle(f"{snapshot.code} v{snapshot.version}")
        page_w, page_h = A4
        y = page_h - MARGIN

        c.setFont("Helvetica-Bold", 14)
        c.drawString(MARGIN, y, self.company_name)
        y -= LINE_HEIGHT
        if self.company_address:
            c.setFont("Helvetica", 9)
            c.drawString(MARGIN, y, self.company_address)
            y -= LINE_HEIGHT

        y -= LINE_HEIGHT
        c.setFont("Helvetica-Bold", 12)
        c.drawString(MARGIN, y, f"Subsidy process {snapshot.code} (version {snapshot.version})")
        y -= 2 * LINE_HEIGHT

        y = self._section(c, y, "Beneficiary", _party_lines(snapshot.beneficiary))
        if snapshot.landlord:
            y = self._section(c, y, "Landlord", _party_lines(snapshot.landlord))
        y = self._section(c, y, "Application", _form_lines(snapshot.form))
        self._section(c, y, "Signed by", _party_lines(snapshot.signed_by))

        c.showPage()
        c.save()
        return buf.getvalue()

    def _section(self, c: canvas.Canvas, y: float, title: str, lines: Iterable[Tuple[str, Any]]) -> float:
        c.setFont("Helvetica-Bold", 11)
        c.drawString(MARGIN, y, title)
        y -= LINE_HEIGHT
        c.setFont("Helvetica", 10)
        for label, value in lines:
            if y < MARGIN:
                c.showPage()
                c.setFont("Helvetica", 10)
                y = A4[1] - MARGIN
            c.drawString(MARGIN + 0.5 * cm, y, f"{label}: {value}")
            y -= LINE_HEIGHT
        return y - LINE_HEIGHT


def _party_lines(party: dict) -> list:
    return [(key.replace("_", " ").capitalize(), value) for key, value in party.items() if value not in (None, "")]


def _form_lines(form: dict) -> list:
    return [(str(key), value) for key, value in sorted(form.items(), key=lambda kv: str(kv[0]))]
