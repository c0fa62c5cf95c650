"""relaysigner - account and signature management for relayed meta-transactions."""

__version__ = "0.1.0"
