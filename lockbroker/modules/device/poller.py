#!/usr/bin/env python3
"""
Device poller - reference client for the device side of the queue.

Polls the API for the next command, hands the action number to an
actuator callable and reports the outcome. It claims one command at a
time and always reports before claiming again, which is the protocol the
queue's single-claim guarantee relies on.
"""

import asyncio
import inspect
import logging
import os
import sys
from typing import Any, Awaitable, Callable, Dict, Optional, Union

import httpx

logger = logging.getLogger("lockbroker.device")

Actuator = Callable[[int], Union[None, Awaitable[None]]]

RECONNECT_DELAY = 5.0


def log_actuator(action: int) -> None:
    """Default actuator: records the action without driving any hardware."""
    logger.info(f"Actuating lock {action}")


class DevicePoller:
    """Claim/perform/report loop against the lockbroker API."""

    def __init__(
        self,
        api_url: str,
        actuator: Actuator = log_actuator,
        poll_interval: float = 1.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize poller.

        Args:
            api_url: Base URL of the lockbroker API
            actuator: Called with the action number; raising marks the command failed
            poll_interval: Seconds to sleep when there is nothing to do
            client: Optional preconfigured httpx client (for tests or custom TLS)
        """
        self.api_url = api_url.rstrip("/")
        self.actuator = actuator
        self.poll_interval = poll_interval
        self._client = client or httpx.AsyncClient(timeout=10.0)
        self._owns_client = client is None

    async def fetch_command(self) -> Optional[Dict[str, Any]]:
        response = await self._client.get(f"{self.api_url}/api/rpi/next-command")
        response.raise_for_status()
        return response.json().get("command")

    async def report(self, command_id: str, success: bool, reason: Optional[str] = None) -> None:
        payload = {"id": command_id, "success": success}
        if reason:
            payload["reason"] = reason

        response = await self._client.post(f"{self.api_url}/api/rpi/complete", json=payload)
        response.raise_for_status()

    async def poll_once(self) -> bool:
        """
        Claim and run at most one command.

        Returns:
            True if a command was handled, False if the queue was empty
        """
        command = await self.fetch_command()
        if not command:
            return False

        command_id = command["id"]
        action = command["action"]
        logger.info(f"Running command {command_id} (action {action}) for {command.get('requesterId')}")

        try:
            result = self.actuator(action)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.error(f"Action {action} failed for command {command_id}: {e}")
            await self.report(command_id, False, str(e) or type(e).__name__)
        else:
            await self.report(command_id, True)

        return True

    async def run(self) -> None:
        """Main poll loop. Runs until cancelled."""
        logger.info(f"Polling {self.api_url} every {self.poll_interval}s")
        try:
            while True:
                try:
                    handled = await self.poll_once()
                except httpx.HTTPError as e:
                    logger.error(f"API request failed: {e}")
                    logger.info(f"Retrying in {RECONNECT_DELAY} seconds...")
                    await asyncio.sleep(RECONNECT_DELAY)
                    continue

                # Go straight back for more while there is a backlog
                if not handled:
                    await asyncio.sleep(self.poll_interval)
        finally:
            await self.close()

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()


def main():
    """Entry point for the device poller."""
    logging.basicConfig(
        level=os.environ.get("LOG_LEVEL", "INFO"),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    api_url = os.environ.get("LOCKBROKER_API_URL")
    if not api_url:
        logger.error("Missing required environment variable LOCKBROKER_API_URL")
        sys.exit(1)

    poller = DevicePoller(
        api_url,
        poll_interval=float(os.environ.get("DEVICE_POLL_INTERVAL", "1.0")),
    )

    try:
        asyncio.run(poller.run())
    except KeyboardInterrupt:
        logger.info("Device poller stopped by user")


if __name__ == "__main__":
    main()
