"""
Media Processing Layer.

This package is responsible for moving media bytes: fetching segments with
retry, streaming direct downloads and assembling the final artifact.
"""

from .assembler import Artifact, Assembler
from .direct import DirectFetcher
from .fetcher import SegmentFetcher

__all__ = ["Artifact", "Assembler", "DirectFetcher", "SegmentFetcher"]
