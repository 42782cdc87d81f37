"""camscout - LAN discovery and provisioning of NVRs and IP cameras."""

__version__ = "0.1.0"
