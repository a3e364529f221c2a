from app.models import Shop
from app.services.shop_service import ShopSnapshotCache, load_shop_config


def _add_shop(session_factory, shop_id="shop-1", config=None):
    db = session_factory()
    try:
        db.add(Shop(id=shop_id, name="The Coffee Club", config=config or {}))
        db.commit()
    finally:
        db.close()


class TestLoadShopConfig:
    def test_loads_snapshot(self, session_factory, db_session):
        _add_shop(
            session_factory,
            config={
                "currency": "MMK",
                "items": [{"id": "p1", "name": "Arabica Beans", "category": "Coffee", "retail_price": 15000}],
                "order_flow": {"enabled": True},
            },
        )

        shop = load_shop_config(db_session, "shop-1")

        assert shop.name == "The Coffee Club"
        assert shop.currency == "MMK"
        assert shop.categories() == ["Coffee"]
        assert shop.order_flow.strings.check_order_status == "Check Order Status"

    def test_missing_shop(self, db_session):
        assert load_shop_config(db_session, "nope") is None

    def test_invalid_config_is_skipped(self, session_factory, db_session):
        _add_shop(session_factory, config={"assistant_config": {"tone": "shouty"}})
        assert load_shop_config(db_session, "shop-1") is None


class TestShopSnapshotCache:
    def test_get_loads_once(self, session_factory):
        _add_shop(session_factory)
        cache = ShopSnapshotCache(session_factory=session_factory)

        first = cache.get("shop-1")
        assert cache.get("shop-1") is first

    def test_refresh_drops_deleted_shops(self, session_factory, shop):
        _add_shop(session_factory, shop_id="shop-2")
        cache = ShopSnapshotCache(session_factory=session_factory)
        cache.put(shop)
        cache.get("shop-2")

        assert cache.refresh() == 1
        assert cache.get("shop-2") is not None
        assert cache.get("shop-1") is None

    def test_invalidate(self, session_factory, shop):
        cache = ShopSnapshotCache(session_factory=session_factory)
        cache.put(shop)
        cache.invalidate("shop-1")
        assert cache.get("shop-1") is None
