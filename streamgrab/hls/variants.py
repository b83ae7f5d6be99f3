"""
Quality selection for master playlists.
"""

from streamgrab.models.manifest import Variant


def select_variant(variants: list[Variant]) -> Variant:
    """
    Picks the variant with the highest declared bandwidth.

    Bandwidth is the only attribute every variant is guaranteed to carry;
    resolution is advisory and ignored. Ties keep playlist order.
    """
    if not variants:
        raise ValueError("Cannot select a variant from an empty list.")
    return sorted(variants, key=lambda v: v.bandwidth, reverse=True)[0]
