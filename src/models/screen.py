from __future__ import annotations

from pydantic import BaseModel, computed_field

from src.models.emergency import Coordinates
from src.models.enums import EmergencyCategory, NotificationLevel, Screen


class Notification(BaseModel):
    """A user-facing alert raised by a controller action."""

    model_config = {"frozen": True}

    level: NotificationLevel
    message: str


class ScreenState(BaseModel):
    """Client-local state of one session; never persisted."""

    screen: Screen = Screen.HOME
    selected_category: EmergencyCategory | None = None
    location: Coordinates | None = None
    submitting: bool = False
    notice: Notification | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def can_submit(self) -> bool:
        return (
            self.screen == Screen.CATEGORY
            and self.selected_category is not None
            and self.location is not None
            and not self.submitting
        )
