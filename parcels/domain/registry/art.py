"""Deterministic artwork parameters for registry cards"""

import hashlib
from datetime import datetime
from typing import Optional

from ...config import ART_SALT
from ...shared.timestamps import iso_utc


def derive_art(claim_id: str, ts: datetime, salt: Optional[str] = None) -> dict:
    """
    Seed a card's gradient from ``sha256(id|ts|salt)``: the first four digest
    bytes give the hue, the hue shift, the gradient angle and the pattern variant.
    """
    seed = f"{claim_id}|{iso_utc(ts)}|{salt if salt is not None else ART_SALT}"
    digest = hashlib.sha256(seed.encode("utf-8")).digest()
    hue = digest[0] % 360
    shift = 20 + digest[1] % 140
    return {
        "hue": hue,
        "shift": shift,
        "angle": digest[2] % 360,
        "variant": digest[3] % 4,
        "palette": [
            f"hsl({hue},72%,62%)",
            f"hsl({(hue + shift) % 360},72%,54%)",
            f"hsl({(hue + 180) % 360},26%,86%)",
        ],
    }
