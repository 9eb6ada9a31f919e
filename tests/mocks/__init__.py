"""
测试替身包
"""

from .mock_messenger import FakeStreamingClient, RecordingNotifier, RecordingPlayback

__all__ = [
    "FakeStreamingClient",
    "RecordingNotifier",
    "RecordingPlayback",
]
