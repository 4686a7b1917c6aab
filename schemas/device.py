from ipaddress import IPv4Address

from pydantic import BaseModel, Field


class ConnectDeviceRequest(BaseModel):
    # devices sit on the home IPv4 subnet; the configure URL has no IPv6 bracketing
    deviceIP: IPv4Address
    devicePort: int = Field(8080, ge=1, le=65535)


class DiscoveredDevice(BaseModel):
    ip: str
    port: int
    name: str = "Plant Watering Device"
    status: str = "available"
    deviceType: str = "ESP8266-PlantWatering"
