"""
webm2mp4: local WebM → MP4 conversion.

Layers, bottom-up:
- execution: ffmpeg engine, bootstrap strategies, engine adapter
- outputs: revocable handles to converted bytes
- notifications: transient user-facing messages
- jobs: the conversion state machine
- routes / main / cli: control surfaces
"""

__version__ = "0.1.0"
