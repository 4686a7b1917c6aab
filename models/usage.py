from tortoise import fields, models


class UsageCounter(models.Model):
    user_id = fields.CharField(max_length=128, pk=True)
    identify_count = fields.IntField(default=0)

    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:
        table = "usage_counters"
