from sitebuilder import storage
from sitebuilder.seed import DEFAULT_TEMPLATES, seed_templates


def test_seed_templates_is_idempotent(db):
    assert seed_templates(db) == len(DEFAULT_TEMPLATES)
    assert seed_templates(db) == 0

    names = [t.name for t in storage.get_templates(db)]
    assert names == sorted(names)
    assert len(names) == len(DEFAULT_TEMPLATES)


def test_seeded_templates_are_served(client, db):
    seed_templates(db)
    categories = {t["category"] for t in client.get("/api/templates").json()}
    assert categories == {"acai", "burger", "pizza", "sweets"}
