import base64
import io
from typing import Any, Optional, Sequence

import qrcode


def _slug_of(location: Any) -> Optional[str]:
    if isinstance(location, dict):
        return location.get("slug")
    return getattr(location, "slug", None)


def _id_of(location: Any) -> Optional[str]:
    if isinstance(location, dict):
        return location.get("id")
    return getattr(location, "id", None)


def build_booking_url(
    origin: str,
    organization_slug: str,
    locations: Sequence[Any] = (),
    location_id: Optional[str] = None,
) -> str:
    """
    Patient sign-up link for a clinic: `{origin}/c/{slug}`.

    Uses the chosen location's slug, else the first location's, else the
    organization slug. Locations may be ORM rows or API dicts.
    """
    selected = None
    if location_id:
        selected = next((loc for loc in locations if _id_of(loc) == location_id), None)
    if selected is None and locations:
        selected = locations[0]

    slug = _slug_of(selected) if selected is not None else organization_slug
    return f"{origin.rstrip('/')}/c/{slug}"


def qr_code_data_uri(data: str, box_size: int = 10, border: int = 4) -> str:
    """Render `data` as a PNG QR code and return it as a data URI"""
    qr = qrcode.QRCode(version=None, box_size=box_size, border=border)
    qr.add_data(data)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white")
    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    encoded = base64.b64encode(buffer.getvalue()).decode()
    return f"data:image/png;base64,{encoded}"
