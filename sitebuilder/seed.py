# sitebuilder/seed.py
"""Popula o catálogo de templates. Uso: sitebuilder-seed"""
import logging

from sqlalchemy.orm import Session

from . import storage
from .database import Base, SessionLocal, engine

logger = logging.getLogger(__name__)

_BASE_HTML = """<header><h1>{{siteName}}</h1><p>{{address}}</p></header>
<main id="menu"></main>
<a class="whatsapp" href="https://wa.me/{{whatsappNumber}}">Pedir via WhatsApp</a>"""

_BASE_CSS = """body{font-family:system-ui,-apple-system,Segoe UI,Roboto,Arial;margin:0}
header{padding:24px;background:var(--primary);color:#fff}
.whatsapp{position:fixed;right:16px;bottom:16px;padding:12px 18px;border-radius:24px;background:#25d366;color:#fff}"""

DEFAULT_TEMPLATES = [
    {
        "name": "Açaí Tropical",
        "category": "acai",
        "description": "Cardápio de açaí com monte-seu-copo",
        "html_content": _BASE_HTML,
        "css_content": _BASE_CSS,
        "config": {"colors": {"primary": "#6b21a8", "secondary": "#facc15"}, "layout": "grid"},
    },
    {
        "name": "Burger House",
        "category": "burger",
        "description": "Hamburgueria com combos e adicionais",
        "html_content": _BASE_HTML,
        "css_content": _BASE_CSS,
        "config": {"colors": {"primary": "#b91c1c", "secondary": "#f97316"}, "layout": "list"},
    },
    {
        "name": "Pizzaria Forno a Lenha",
        "category": "pizza",
        "description": "Pizzas por sabor e tamanho",
        "html_content": _BASE_HTML,
        "css_content": _BASE_CSS,
        "config": {"colors": {"primary": "#15803d", "secondary": "#dc2626"}, "layout": "grid"},
    },
    {
        "name": "Doceria",
        "category": "sweets",
        "description": "Bolos, doces e encomendas",
        "html_content": _BASE_HTML,
        "css_content": _BASE_CSS,
        "config": {"colors": {"primary": "#db2777", "secondary": "#fde68a"}, "layout": "cards"},
    },
]


def seed_templates(db: Session) -> int:
    existing = {t.name for t in storage.get_templates(db)}
    created = 0
    for tpl in DEFAULT_TEMPLATES:
        if tpl["name"] in existing:
            continue
        storage.create_template(db, dict(tpl))
        created += 1
    return created


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        created = seed_templates(db)
    finally:
        db.close()
    logger.info("%d template(s) criados", created)


if __name__ == "__main__":
    main()
