"""Asset resolution from the public QR code path.

Labels encode ``<SITE_URL>/public/asset/<id>``. Scanners and people
typing by hand also send the bare slug or just the number, so all three
forms resolve.
"""

import re

from ..exceptions import AssetNotFound
from ..models import Asset

SLUG_PATTERN = re.compile(r"(?:^|/)(?:asset/)?(\d+)/?$")


def _truncate(value, max_len=100):
    s = str(value)
    return s if len(s) <= max_len else s[:max_len] + "..."


def parse_public_slug(slug):
    """Return the asset PK encoded in ``slug``, or None."""
    text = (slug or "").strip().split("?", 1)[0].split("#", 1)[0]
    match = SLUG_PATTERN.search(text)
    return int(match.group(1)) if match else None


def resolve_public_asset(slug) -> Asset:
    """Find the asset behind a public slug.

    Tries the stored ``qr_slug`` first, then the numeric id. Raises
    AssetNotFound when neither matches.
    """
    text = (slug or "").strip().strip("/")
    if not text:
        raise AssetNotFound(message="Please enter an asset code.")

    qs = Asset.objects.with_related()
    asset = qs.filter(qr_slug=text).first()
    if asset:
        return asset

    pk = parse_public_slug(text)
    if pk is not None:
        asset = qs.filter(pk=pk).first()
        if asset:
            return asset
    raise AssetNotFound(
        message=f"No asset found for code '{_truncate(text)}'."
    )
