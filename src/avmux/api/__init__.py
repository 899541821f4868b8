"""API module for avmux.

API layer:
- Validates inputs, shapes JSON payloads
- Maps merge errors to HTTP statuses
- Forbidden: ffmpeg work, downloads, temp file handling
"""
