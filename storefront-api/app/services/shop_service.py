from typing import Callable, Optional

from pydantic import ValidationError
from sqlalchemy.orm import Session

from app.database import SessionLocal
from app.logging_config import get_logger
from app.models import Shop
from app.schemas.shop import ShopConfig

logger = get_logger("shop_service")


def load_shop_config(db: Session, shop_id: str) -> Optional[ShopConfig]:
    """Read one shop row into an immutable snapshot. Invalid configuration is logged and skipped."""
    row = db.query(Shop).filter(Shop.id == shop_id).first()
    if row is None:
        return None
    try:
        return ShopConfig.model_validate({**(row.config or {}), "id": row.id, "name": row.name})
    except ValidationError as exc:
        logger.error(
            "Invalid shop configuration",
            extra={"context": {"shop_id": shop_id, "errors": exc.errors(include_url=False)}},
        )
        return None


class ShopSnapshotCache:
    """Shop snapshots keyed by id, refreshed by the app's background task."""

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self._session_factory = session_factory
        self._snapshots: dict[str, ShopConfig] = {}

    def _load(self, shop_id: str) -> Optional[ShopConfig]:
        db = self._session_factory()
        try:
            return load_shop_config(db, shop_id)
        finally:
            db.close()

    def get(self, shop_id: str) -> Optional[ShopConfig]:
        snapshot = self._snapshots.get(shop_id)
        if snapshot is None:
            snapshot = self._load(shop_id)
            if snapshot is not None:
                self._snapshots[shop_id] = snapshot
        return snapshot

    def put(self, shop: ShopConfig) -> None:
        self._snapshots[shop.id] = shop

    def invalidate(self, shop_id: Optional[str] = None) -> None:
        if shop_id is None:
            self._snapshots.clear()
        else:
            self._snapshots.pop(shop_id, None)

    def refresh(self) -> int:
        """Reload every cached shop. Shops that disappeared are dropped."""
        refreshed = 0
        for shop_id in list(self._snapshots):
            snapshot = self._load(shop_id)
            if snapshot is None:
                self._snapshots.pop(shop_id, None)
                continue
            self._snapshots[shop_id] = snapshot
            refreshed += 1
        return refreshed
