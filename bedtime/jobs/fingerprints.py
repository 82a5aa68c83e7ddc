"""Avoid-list selection from a child's recent story fingerprints."""

from typing import Iterable, List

from bedtime.jobs.models import AvoidPair, Fingerprint


def build_avoid_pairs(fingerprints: Iterable[Fingerprint]) -> List[AvoidPair]:
    """
    Keep the (setting, conflict) of every fingerprint that has both.

    Repository order is preserved and duplicates are kept; the prompt
    treats the list as hints, not as a set.
    """
    return [
        AvoidPair(setting=fp.setting, conflict=fp.conflict)
        for fp in fingerprints
        if fp.setting and fp.conflict
    ]
