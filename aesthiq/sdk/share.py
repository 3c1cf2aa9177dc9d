from typing import Optional

from ..booking_link import build_booking_url, qr_code_data_uri
from .cache import QueryCache
from .http import ApiClient
from .organization import OrganizationView

LOCATIONS_KEY = ("/api/locations",)


class ShareLink:
    """Patient booking link and QR code for the signed-in clinic"""

    def __init__(self, api: ApiClient, cache: QueryCache, organization: OrganizationView, origin: str):
        self.api = api
        self.cache = cache
        self.organization = organization
        self.origin = origin

    def locations(self) -> list[dict]:
        return self.cache.fetch(LOCATIONS_KEY, lambda: self.api.get("/api/locations"))

    def url(self, location_id: Optional[str] = None) -> Optional[str]:
        org = self.organization.organization()
        if not org:
            return None
        return build_booking_url(self.origin, org["slug"], self.locations(), location_id)

    def qr_code(self, location_id: Optional[str] = None, box_size: int = 10) -> Optional[str]:
        url = self.url(location_id)
        return qr_code_data_uri(url, box_size=box_size) if url else None
