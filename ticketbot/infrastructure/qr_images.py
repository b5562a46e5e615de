"""QR Image Store — renders ticket validation URLs as PNGs under the media directory.

Invariants:
    - Files land at <media_dir>/tickets/<order_id>/<ticket_id>.png
    - The returned URL is <public_base_url>/media/tickets/<order_id>/<ticket_id>.png,
      served by the StaticFiles mount in main.py
    - Re-rendering the same ticket overwrites the same file
    - Rendering and file IO run in a worker thread, never on the event loop
    - discard_order removes every image of an order (issuance rolled back)
"""

import asyncio
import logging
import shutil
from io import BytesIO
from pathlib import Path

import qrcode

logger = logging.getLogger(__name__)

MEDIA_URL_PREFIX = "/media"


def render_qr_png(payload: str, box_size: int = 8, border: int = 2) -> bytes:
    qr = qrcode.QRCode(box_size=box_size, border=border)
    qr.add_data(payload)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")
    buf = BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


class LocalQrImageStore:
    """Implements core.repository_protocols.QrImageStore on the local filesystem."""

    def __init__(self, media_dir: str, public_base_url: str):
        self.media_dir = Path(media_dir)
        self.public_base_url = public_base_url.rstrip("/")

    def _order_dir(self, order_id: str) -> Path:
        return self.media_dir / "tickets" / order_id

    async def save_ticket_qr(self, order_id: str, ticket_id: str, payload: str) -> str:
        target = self._order_dir(order_id) / f"{ticket_id}.png"
        await asyncio.to_thread(self._write, target, payload)
        logger.debug("QR image stored", extra={"order_id": order_id})
        relative = target.relative_to(self.media_dir).as_posix()
        return f"{self.public_base_url}{MEDIA_URL_PREFIX}/{relative}"

    async def discard_order(self, order_id: str) -> None:
        directory = self._order_dir(order_id)
        if directory.exists():
            await asyncio.to_thread(shutil.rmtree, directory)
            logger.info("QR images discarded", extra={"order_id": order_id})

    @staticmethod
    def _write(target: Path, payload: str) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(render_qr_png(payload))
