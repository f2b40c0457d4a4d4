"""Core test discovery functionality."""

from testfocus.core.discovery import DiscoveryResult, TestFileDiscovery

__all__ = ["DiscoveryResult", "TestFileDiscovery"]
