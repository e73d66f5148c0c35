from typing import Literal, Optional
from pydantic import BaseModel, ValidationError


class SettingsSchema(BaseModel):
    db_path: str = "fitness.db"
    local_storage_path: str = "local_storage.db"
    user_id: Optional[str] = None
    weight_unit: Literal["lbs", "kg"] = "lbs"
    log_level: str = "INFO"
    api_key: Optional[str] = None


def validate_settings(data: dict) -> None:
    try:
        SettingsSchema(**data)
    except ValidationError as e:
        raise ValueError(str(e))


def load_settings(data: dict) -> SettingsSchema:
    """Return settings built from ``data`` on top of the defaults."""
    validate_settings(data)
    return SettingsSchema(**data)
