"""Data models for values read back from the drive."""

from .system import CommunicationSettings
