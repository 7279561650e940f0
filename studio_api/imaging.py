import base64
import binascii
import io
import ipaddress
import logging

from PIL import Image

logger = logging.getLogger(__name__)

# Max dimension (longest side) for images forwarded to vision providers.
# Keeps request bodies small enough for the per-provider timeout.
MAX_IMAGE_DIMENSION = 1500

_LOCAL_HOSTNAMES = frozenset({"localhost", "localhost.localdomain", "ip6-localhost", "ip6-loopback"})


class InvalidImageError(ValueError):
    """The image data could not be decoded."""


def normalize_image(raw: bytes, max_dim: int = MAX_IMAGE_DIMENSION) -> bytes:
    """Shrink raw image bytes to ``max_dim`` on the longest side and re-encode as JPEG."""
    try:
        img = Image.open(io.BytesIO(raw))
        img.load()
    except (OSError, ValueError, Image.DecompressionBombError) as e:
        raise InvalidImageError(
            "Could not process the provided image. Please check the image data."
        ) from e

    w, h = img.size
    if max(w, h) > max_dim:
        scale = max_dim / max(w, h)
        new_size = (max(1, int(w * scale)), max(1, int(h * scale)))
        img = img.resize(new_size, Image.LANCZOS)
        logger.info("Resized image from %dx%d to %dx%d", w, h, *new_size)
    # Drop alpha channel, JPEG doesn't support it
    if img.mode != "RGB":
        img = img.convert("RGB")
    buf = io.BytesIO()
    img.save(buf, format="JPEG", quality=85)
    return buf.getvalue()


def optimize_image(data_url: str, max_dim: int = MAX_IMAGE_DIMENSION) -> str:
    """Decode a base64 data URL, normalise it and re-encode as a JPEG data URL."""
    _, _, payload = data_url.partition(",")
    try:
        raw = base64.b64decode(payload, validate=True)
    except binascii.Error as e:
        raise InvalidImageError(
            "Could not process the provided image. Please check the image data."
        ) from e
    return "data:image/jpeg;base64," + base64.b64encode(normalize_image(raw, max_dim)).decode("ascii")


def is_internal_host(host: str) -> bool:
    """True for localhost names and literal private, loopback or link-local addresses.

    Hostnames that are not IP literals return False; resolve them first.
    """
    host = host.strip("[]").rstrip(".").lower()
    if host in _LOCAL_HOSTNAMES or host.endswith(".localhost"):
        return True
    try:
        address = ipaddress.ip_address(host.split("%", 1)[0])
    except ValueError:
        return False
    if isinstance(address, ipaddress.IPv6Address) and address.ipv4_mapped is not None:
        address = address.ipv4_mapped
    return (
        address.is_private
        or address.is_loopback
        or address.is_link_local
        or address.is_reserved
        or address.is_multicast
        or address.is_unspecified
    )
