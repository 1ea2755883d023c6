"""
Face Time-Clock - Face Recognition Attendance Kiosk

A modular Python service that recognizes employees in a live camera feed and
records their daily attendance (time in, time out, breaks) in SQLite.
Provides an operator HTTP API with MJPEG video streaming.
"""

__version__ = "1.0.0"
