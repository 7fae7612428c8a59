from idea_flow.memory import InMemoryIdeaStore
from idea_flow.schemas import BusinessIdea, Category, MarketRisk

from .conftest import make_draft


def _idea(idea_id: str, title: str = "Sweet Crumbs Bakery") -> BusinessIdea:
    return BusinessIdea(
        id=idea_id,
        title=title,
        category=Category.FOOD,
        description="Artisan bread at farmers markets.",
        skills=["baking"],
        initial_budget={"min": 500, "max": 2000},
        market_risk=MarketRisk.LOW,
        timeframe={"short_term": "Permits.", "medium_term": "Markets.", "long_term": "Storefront."},
        plan=make_draft().plan,
    )


def test_save_and_get_round_trip() -> None:
    store = InMemoryIdeaStore()
    idea = _idea("a")

    store.save(idea)

    assert store.get("a") == idea
    assert store.get("missing") is None


def test_save_replaces_and_refreshes_timestamp() -> None:
    store = InMemoryIdeaStore()
    store.save(_idea("a"))
    first_write = store.updated_at("a")

    store.save(_idea("a", title="Crumb Club"))

    assert store.get("a").title == "Crumb Club"
    assert store.updated_at("a") >= first_write
    assert len(store.list()) == 1


def test_delete_ignores_unknown_ids() -> None:
    store = InMemoryIdeaStore()
    store.save(_idea("a"))

    store.delete("a")
    store.delete("a")

    assert store.list() == []
    assert store.updated_at("a") is None


def test_health_check_reports_count() -> None:
    store = InMemoryIdeaStore()
    store.save(_idea("a"))
    store.save(_idea("b"))

    assert store.health_check() == {"status": "healthy", "details": {"type": "memory", "ideas": 2}}
