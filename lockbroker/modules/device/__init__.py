"""
Device Module - Black Box Interface

Purpose: Device-side client of the claim/complete protocol
Interface: DevicePoller.poll_once(), DevicePoller.run()
Hidden: HTTP transport, retry delays

Actuation itself is delegated to a callable supplied by the deployment.
"""

from .poller import DevicePoller, log_actuator

__all__ = ["DevicePoller", "log_actuator"]
