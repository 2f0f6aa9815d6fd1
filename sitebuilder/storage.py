# sitebuilder/storage.py
"""
Acesso ao banco: funções CRUD por entidade e as duas agregações do painel.

Toda função recebe a Session explicitamente; as que dependem do usuário
autenticado recebem o id dele como parâmetro. Erros do banco sobem para a
camada de rotas, que faz o rollback e responde.
"""
import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .models import Analytics, Order, Product, Site, Template, User

logger = logging.getLogger(__name__)

ANALYTICS_COUNTERS = ("views", "orders", "revenue", "conversion_rate")


# -----------------------------------------------------------------------------
# Usuários
# -----------------------------------------------------------------------------
def get_user(db: Session, user_id: str) -> Optional[User]:
    return db.get(User, user_id)


def upsert_user(db: Session, user_id: str, **claims) -> User:
    user = db.get(User, user_id)
    if user is None:
        user = User(id=user_id)
        db.add(user)
    for field, value in claims.items():
        if value is not None:
            setattr(user, field, value)
    user.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(user)
    return user


# -----------------------------------------------------------------------------
# Templates
# -----------------------------------------------------------------------------
def get_templates(db: Session) -> List[Template]:
    return db.query(Template).order_by(Template.name).all()


def get_template(db: Session, template_id: int) -> Optional[Template]:
    return db.get(Template, template_id)


def create_template(db: Session, data: Dict[str, Any]) -> Template:
    tpl = Template(**data)
    db.add(tpl)
    db.commit()
    db.refresh(tpl)
    return tpl


# -----------------------------------------------------------------------------
# Sites
# -----------------------------------------------------------------------------
def get_sites_by_user(db: Session, user_id: str) -> List[Site]:
    return (
        db.query(Site)
        .filter(Site.user_id == user_id)
        .order_by(Site.created_at.desc())
        .all()
    )


def get_site(db: Session, site_id: str) -> Optional[Site]:
    return db.get(Site, site_id)


def get_site_by_slug(db: Session, slug: str) -> Optional[Site]:
    # não filtra is_active: quem expõe publicamente precisa checar
    return db.query(Site).filter(Site.slug == slug).first()


def get_owned_site(db: Session, site_id: str, user_id: str) -> Optional[Site]:
    """Site só é devolvido para o dono; inexistente e de outro usuário dão o mesmo None."""
    site = db.get(Site, site_id)
    if not site or site.user_id != user_id:
        return None
    return site


def create_site(db: Session, user_id: str, data: Dict[str, Any]) -> Site:
    site = Site(user_id=user_id, **data)
    db.add(site)
    db.commit()  # IntegrityError se o slug já existir
    db.refresh(site)
    return site


def update_site(db: Session, site: Site, data: Dict[str, Any]) -> Site:
    for field, value in data.items():
        setattr(site, field, value)
    site.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(site)
    return site


def delete_site(db: Session, site: Site) -> None:
    # produtos, pedidos e analytics vão junto (cascade no relacionamento)
    db.delete(site)
    db.commit()


# -----------------------------------------------------------------------------
# Produtos
# -----------------------------------------------------------------------------
def get_products_by_site(db: Session, site_id: str) -> List[Product]:
    return db.query(Product).filter(Product.site_id == site_id).order_by(Product.name).all()


def get_product(db: Session, product_id: int) -> Optional[Product]:
    return db.get(Product, product_id)


def create_product(db: Session, site_id: str, data: Dict[str, Any]) -> Product:
    pr = Product(site_id=site_id, **data)
    db.add(pr)
    db.commit()
    db.refresh(pr)
    return pr


def update_product(db: Session, product: Product, data: Dict[str, Any]) -> Product:
    for field, value in data.items():
        setattr(product, field, value)
    db.commit()
    db.refresh(product)
    return product


def delete_product(db: Session, product: Product) -> None:
    db.delete(product)
    db.commit()


# -----------------------------------------------------------------------------
# Pedidos
# -----------------------------------------------------------------------------
def get_orders_by_site(db: Session, site_id: str, status: Optional[str] = None) -> List[Order]:
    q = db.query(Order).filter(Order.site_id == site_id)
    if status:
        q = q.filter(Order.status == status)
    return q.order_by(Order.created_at.desc()).all()


def get_order(db: Session, order_id: str) -> Optional[Order]:
    return db.get(Order, order_id)


def create_order(db: Session, site_id: str, data: Dict[str, Any]) -> Order:
    now = datetime.utcnow()
    order = Order(site_id=site_id, status="new", created_at=now, updated_at=now, **data)
    db.add(order)
    db.commit()
    db.refresh(order)
    return order


def update_order_status(db: Session, order: Order, status: str) -> Order:
    # sem máquina de estados: qualquer status válido a qualquer momento
    order.status = status
    order.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(order)
    return order


# -----------------------------------------------------------------------------
# Analytics
# -----------------------------------------------------------------------------
def _analytics_row(db: Session, site_id: str, day: date) -> Optional[Analytics]:
    return (
        db.query(Analytics)
        .filter(Analytics.site_id == site_id, Analytics.date == day)
        .first()
    )


def get_analytics(db: Session, site_id: str, start: date, end: date) -> List[Analytics]:
    return (
        db.query(Analytics)
        .filter(
            Analytics.site_id == site_id,
            Analytics.date >= start,
            Analytics.date <= end,
        )
        .order_by(Analytics.date)
        .all()
    )


def update_analytics(db: Session, data: Dict[str, Any]) -> Analytics:
    """
    Upsert por (site, dia). Em linha existente cada contador vira
    ``valor recebido or valor atual``: o valor é substituído, não somado.

    Chamar duas vezes com ``views=1`` deixa ``views == 1``. Para contadores
    que acumulam use :func:`increment_analytics`.
    """
    existing = _analytics_row(db, data["site_id"], data["date"])
    if existing:
        for field in ANALYTICS_COUNTERS:
            setattr(existing, field, data.get(field) or getattr(existing, field))
        db.commit()
        db.refresh(existing)
        return existing

    row = Analytics(**{k: v for k, v in data.items() if v is not None})
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def _bump(db: Session, row_id: int, views: int, orders: int, revenue: Decimal) -> None:
    db.query(Analytics).filter(Analytics.id == row_id).update(
        {
            Analytics.views: func.coalesce(Analytics.views, 0) + views,
            Analytics.orders: func.coalesce(Analytics.orders, 0) + orders,
            Analytics.revenue: func.coalesce(Analytics.revenue, 0) + revenue,
        },
        synchronize_session=False,
    )


def increment_analytics(
    db: Session,
    site_id: str,
    day: date,
    views: int = 0,
    orders: int = 0,
    revenue: Decimal = Decimal("0"),
) -> Analytics:
    """Soma aos contadores do dia, criando a linha se preciso."""
    row = _analytics_row(db, site_id, day)
    if row is None:
        row = Analytics(site_id=site_id, date=day, views=views, orders=orders, revenue=revenue)
        db.add(row)
        try:
            db.commit()
        except IntegrityError:
            # outra requisição criou a linha do dia primeiro
            db.rollback()
            logger.info("analytics row for site %s on %s created concurrently, retrying as update", site_id, day)
            row = _analytics_row(db, site_id, day)
            if row is None:
                raise
            _bump(db, row.id, views, orders, revenue)
            db.commit()
    else:
        _bump(db, row.id, views, orders, revenue)
        db.commit()
    db.refresh(row)
    return row


def get_dashboard_stats(db: Session, user_id: str) -> Dict[str, Any]:
    sites = db.query(Site).filter(Site.user_id == user_id).all()
    if not sites:
        return {"total_sites": 0, "total_orders": 0, "total_revenue": Decimal("0"), "total_views": 0}

    total_orders = 0
    total_revenue = Decimal("0")
    total_views = 0
    for site in sites:
        order_count = db.query(func.count(Order.id)).filter(Order.site_id == site.id).scalar()
        revenue = db.query(func.sum(Order.total_amount)).filter(Order.site_id == site.id).scalar()
        views = db.query(func.sum(Analytics.views)).filter(Analytics.site_id == site.id).scalar()

        total_orders += int(order_count or 0)
        total_revenue += Decimal(str(revenue or 0))
        total_views += int(views or 0)

    return {
        "total_sites": len(sites),
        "total_orders": total_orders,
        "total_revenue": total_revenue.quantize(Decimal("0.01")),
        "total_views": total_views,
    }
