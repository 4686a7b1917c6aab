import os
from pathlib import Path

from core.config import settings

IMAGE_NAME = "plant_image.jpg"


class ImageStorage:
    """Plant photos in the storage bucket directory, served publicly under /storage."""

    def __init__(self, root: str = None, public_base_url: str = None):
        self.root = Path(root or settings.STORAGE_BUCKET)
        self.public_base_url = (public_base_url or settings.PUBLIC_BASE_URL).rstrip("/")
        self.root.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def object_name(user_id: str, plant_id: str) -> str:
        return f"plants/{user_id}/{plant_id}/{IMAGE_NAME}"

    def path_for(self, user_id: str, plant_id: str) -> Path:
        return self.root / self.object_name(user_id, plant_id)

    def public_url(self, user_id: str, plant_id: str) -> str:
        return f"{self.public_base_url}/storage/{self.object_name(user_id, plant_id)}"

    def upload(self, user_id: str, plant_id: str, content: bytes) -> str:
        path = self.path_for(user_id, plant_id)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "wb") as f:
            f.write(content)
        # world-readable, the /storage mount serves it without auth
        os.chmod(path, 0o644)
        return self.public_url(user_id, plant_id)

    def delete(self, user_id: str, plant_id: str) -> bool:
        path = self.path_for(user_id, plant_id)
        if not path.exists():
            return False
        path.unlink()
        if not any(path.parent.iterdir()):
            path.parent.rmdir()
        return True
