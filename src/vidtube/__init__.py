"""VidTube — video-sharing platform backend.

User accounts with JWT access/refresh sessions, channel profiles,
watch history and video comments, served over a FastAPI HTTP API.
"""

__version__ = "0.1.0"
