"""
reMIND - Voice companion core.

A validated voice-interaction state machine and an audio streaming
coordinator connecting microphone capture, the Azure Voice Live
realtime API and speaker playback.
"""

__version__ = "0.1.0"
