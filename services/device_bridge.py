import asyncio
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional

import requests
from starlette.concurrency import run_in_threadpool

from core.config import settings
from core.exceptions import DeviceError
from core.logger import device_logger
from schemas.device import DiscoveredDevice

TARGET_PROBE_TIMEOUT = 1.0
PROBE_TIMEOUT = 0.5
CONFIGURE_TIMEOUT = 5
USER_AGENT = "PlantIt-DeviceDiscovery/1.0"

DEFAULT_DEVICE_THRESHOLDS = {"minVWC": 15, "maxVWC": 45, "optimalVWC": 30}


def resolve_thresholds(plant: dict) -> dict:
    """Thresholds to push to a device: care profile, then record fields, then defaults."""
    soil = (plant.get("careInstructions") or {}).get("soilMoisture") or {}
    values = {}
    for name, default in DEFAULT_DEVICE_THRESHOLDS.items():
        value = soil.get(name)
        if value is None:
            value = plant.get(name)
        if value is None:
            value = default
        values[name] = value
    return values


class DeviceBridge:
    """Finds and configures ESP8266 watering devices on the local network."""

    def __init__(
            self,
            session: requests.Session = None,
            subnet: str = None,
            target_ip: str = None,
            port: int = None,
            max_workers: int = None,
    ):
        self.session = session or requests.Session()
        self.subnet = (subnet or settings.DEVICE_SUBNET).rstrip(".")
        self.target_ip = target_ip or settings.DEVICE_TARGET_IP
        self.port = port or settings.DEVICE_PORT
        self.max_workers = max_workers or settings.DEVICE_SCAN_WORKERS

    def scan_targets(self):
        """(ip, timeout) pairs in probe order: the designated address, then the rest of the /24."""
        targets = [(self.target_ip, TARGET_PROBE_TIMEOUT)]
        for host in range(1, 255):
            ip = f"{self.subnet}.{host}"
            if ip != self.target_ip:
                targets.append((ip, PROBE_TIMEOUT))
        return targets

    def _probe(self, ip: str, timeout: float) -> Optional[DiscoveredDevice]:
        try:
            response = self.session.get(
                f"http://{ip}:{self.port}/status",
                timeout=timeout,
                headers={"User-Agent": USER_AGENT},
            )
            response.raise_for_status()
        except requests.RequestException:
            # most addresses have nothing listening
            return None

        device_logger.log_found(ip, response.text[:200])
        return DiscoveredDevice(ip=ip, port=self.port)

    async def discover(self) -> List[DiscoveredDevice]:
        targets = self.scan_targets()
        device_logger.log_scan(len(targets), self.subnet)

        loop = asyncio.get_running_loop()
        with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="device-scan") as pool:
            results = await asyncio.gather(
                *(loop.run_in_executor(pool, self._probe, ip, timeout) for ip, timeout in targets),
                return_exceptions=True,
            )

        devices = []
        for (ip, _), result in zip(targets, results):
            if isinstance(result, Exception):
                device_logger.log_error(f"probe {ip}", result)
            elif result is not None:
                devices.append(result)

        device_logger.logger.info(f"Device discovery completed. Found {len(devices)} device(s)")
        return devices

    def _post_configuration(self, ip: str, port: int, values: dict):
        response = self.session.post(
            f"http://{ip}:{port}/configure",
            json=values,
            timeout=CONFIGURE_TIMEOUT,
            headers={"Content-Type": "application/json"},
        )
        response.raise_for_status()
        return response

    async def configure(self, ip: str, port: int, values: dict):
        """Push moisture thresholds to one device. Raises DeviceError when it can't be reached."""
        device_logger.log_configure(ip, port, values)
        try:
            response = await run_in_threadpool(self._post_configuration, ip, port, values)
        except requests.RequestException as e:
            device_logger.log_error(f"configure {ip}:{port}", e)
            raise DeviceError(
                "Make sure the device is connected to the same network and listening for connections"
            ) from e

        device_logger.logger.info(f"Device at {ip}:{port} answered: {response.text[:200]}")
        return values
