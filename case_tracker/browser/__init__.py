"""Browser package"""
from .driver import AutomationDriver
from .controller import BrowserController
from .artifact_capture import ArtifactCapture

__all__ = ["AutomationDriver", "BrowserController", "ArtifactCapture"]
