from streamvault.models.user import UserRow
from streamvault.models.video import VideoRow

__all__ = ["UserRow", "VideoRow"]
