"""Legacy bridge/config command surface for a mesh-to-MQTT gateway."""

__version__ = "0.4.0"
