"""Website liveness probing."""

from .service import LivenessProbe

__all__ = ["LivenessProbe"]
