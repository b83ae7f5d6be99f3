"""
Storage Layer.

This package handles everything that touches disk: the INI configuration file
and writing finished artifacts to the output directory.
"""

from .artifact_writer import ArtifactWriter
from .config_manager import ConfigManager

__all__ = ["ArtifactWriter", "ConfigManager"]
