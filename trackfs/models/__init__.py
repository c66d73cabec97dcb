from trackfs.models.legacy import LegacyFolder, LegacyTrack
from trackfs.models.node import Node

__all__ = ["Node", "LegacyFolder", "LegacyTrack"]
