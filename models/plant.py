from tortoise import fields, models


class Plant(models.Model):
    id = fields.UUIDField(pk=True)
    # identity provider subject; every record lives under its owner
    user_id = fields.CharField(max_length=128, index=True)

    species = fields.CharField(max_length=255)  # scientific name
    common_name = fields.CharField(max_length=255, default="Unknown")
    family = fields.CharField(max_length=255, default="Unknown")
    confidence = fields.FloatField(default=0.0)

    image_url = fields.CharField(max_length=500, null=True)

    # full care profile as returned to the client
    care_instructions = fields.JSONField(null=True)

    # duplicated at the top level so devices don't have to dig into care_instructions
    min_vwc = fields.FloatField(default=15)
    max_vwc = fields.FloatField(default=45)
    optimal_vwc = fields.FloatField(default=30)
    watering_threshold = fields.FloatField(default=20)
    current_vwc = fields.FloatField(default=0)
    water_interval_days = fields.IntField(null=True)

    created_at = fields.DatetimeField(auto_now_add=True)
    last_watered = fields.DatetimeField(null=True)

    device_connected = fields.BooleanField(default=False)
    device_ip = fields.CharField(max_length=64, null=True)
    device_port = fields.IntField(null=True)
    connected_at = fields.DatetimeField(null=True)

    class Meta:
        table = "plants"

    def __str__(self):
        return f"{self.species} ({self.id})"

    def thresholds(self) -> dict:
        return {
            "minVWC": self.min_vwc,
            "maxVWC": self.max_vwc,
            "optimalVWC": self.optimal_vwc,
            "wateringThreshold": self.watering_threshold,
        }

    def to_dict(self):
        data = {
            "id": str(self.id),
            "species": self.species,
            "commonName": self.common_name,
            "family": self.family,
            "confidence": self.confidence,
            "imageUrl": self.image_url,
            "careInstructions": self.care_instructions,
            **self.thresholds(),
            "currentVWC": self.current_vwc,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "lastWatered": self.last_watered.isoformat() if self.last_watered else None,
        }
        if self.water_interval_days is not None:
            data["waterIntervalDays"] = self.water_interval_days

        if self.device_connected:
            data.update({
                "deviceConnected": True,
                "deviceIP": self.device_ip,
                "devicePort": self.device_port,
                "connectedAt": self.connected_at.isoformat() if self.connected_at else None,
            })
        else:
            data["deviceConnected"] = False

        return data
