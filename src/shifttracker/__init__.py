"""Local-first shift tracking with passcode lock and remote room sync."""

__version__ = "0.1.0"
