# sitebuilder/main.py
from __future__ import annotations

import logging
import os
import time
from contextlib import contextmanager
from dataclasses import asdict
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from fastapi import FastAPI, Depends, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import aggregation, storage
from .auth import get_current_user
from .database import Base, engine, get_db
from .models import Site, User
from .pix import MAX_AMOUNT, build_pix_code
from .schemas import (
    AnalyticsIn,
    AnalyticsOut,
    DashboardStatsOut,
    DeployOut,
    LinkOut,
    OrderCreatedOut,
    OrderIn,
    OrderOut,
    OrderStatus,
    PixOut,
    ProductIn,
    ProductOut,
    ProductUpdate,
    PublicSiteOut,
    ReportOut,
    SiteIn,
    SiteOut,
    SiteUpdate,
    StatusChange,
    TemplateIn,
    TemplateOut,
    UserOut,
)
from .whatsapp import order_summary_message, storefront_message, whatsapp_url

# -----------------------------------------------------------------------------
# Config / logging
# -----------------------------------------------------------------------------
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
DEFAULT_TIMEZONE = os.getenv("DEFAULT_TIMEZONE", "America/Sao_Paulo")
ORDER_TOTAL_TOLERANCE = Decimal(os.getenv("ORDER_TOTAL_TOLERANCE", "0.01"))

PERIOD_DAYS = {"7d": 7, "30d": 30, "90d": 90}

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

# -----------------------------------------------------------------------------
# App + CORS
# -----------------------------------------------------------------------------
app = FastAPI(title="SiteBuilder Pro API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# -----------------------------------------------------------------------------
# DB: cria tabelas (se não existirem)
# -----------------------------------------------------------------------------
Base.metadata.create_all(bind=engine)

# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------
@contextmanager
def store_op(db: Session, operation: str):
    """Falha inesperada do banco vira 500 com a operação no log."""
    try:
        yield
    except HTTPException:
        raise
    except Exception:
        db.rollback()
        logger.exception("Falha ao %s", operation)
        raise HTTPException(status_code=500, detail=f"Falha ao {operation}")


def _owned_site_or_404(db: Session, site_id: str, current: User) -> Site:
    site = storage.get_owned_site(db, site_id, current.id)
    if not site:
        raise HTTPException(status_code=404, detail="Site não encontrado")
    return site


def _zone(name: Optional[str]) -> ZoneInfo:
    try:
        return ZoneInfo(name or DEFAULT_TIMEZONE)
    except (ZoneInfoNotFoundError, ValueError):
        raise HTTPException(status_code=400, detail=f"Fuso horário inválido: {name}")


def _parse_day(raw: Optional[str], field: str) -> date:
    if not raw:
        raise HTTPException(status_code=400, detail=f"Parâmetro {field} obrigatório")
    try:
        return datetime.fromisoformat(raw.replace("Z", "+00:00")).date()
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Data inválida em {field}")


def _today() -> date:
    return datetime.now(_zone(None)).date()


def _period_start(period: str) -> date:
    return _today() - timedelta(days=PERIOD_DAYS.get(period, 30))


# -----------------------------------------------------------------------------
# Auth / painel
# -----------------------------------------------------------------------------
@app.get("/api/auth/user", response_model=UserOut)
def auth_user(current: User = Depends(get_current_user)):
    return current


@app.get("/api/dashboard/stats", response_model=DashboardStatsOut)
def dashboard_stats(current: User = Depends(get_current_user), db: Session = Depends(get_db)):
    with store_op(db, "carregar estatísticas do painel"):
        return storage.get_dashboard_stats(db, current.id)


# -----------------------------------------------------------------------------
# Templates
# -----------------------------------------------------------------------------
@app.get("/api/templates", response_model=List[TemplateOut])
def list_templates(db: Session = Depends(get_db)):
    with store_op(db, "listar templates"):
        return storage.get_templates(db)


@app.get("/api/templates/{template_id}", response_model=TemplateOut)
def get_template(template_id: int, db: Session = Depends(get_db)):
    with store_op(db, "carregar template"):
        tpl = storage.get_template(db, template_id)
    if not tpl:
        raise HTTPException(status_code=404, detail="Template não encontrado")
    return tpl


@app.post("/api/templates", response_model=TemplateOut, status_code=201)
def create_template(
    payload: TemplateIn,
    _: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    with store_op(db, "criar template"):
        return storage.create_template(db, payload.model_dump())


# -----------------------------------------------------------------------------
# Sites (público)
# -----------------------------------------------------------------------------
@app.get("/api/sites/by-slug/{slug}", response_model=SiteOut)
def site_by_slug(slug: str, db: Session = Depends(get_db)):
    with store_op(db, "carregar site"):
        site = storage.get_site_by_slug(db, slug)
    if not site:
        raise HTTPException(status_code=404, detail="Site não encontrado")
    return site


@app.get("/api/public/sites/{slug}", response_model=PublicSiteOut)
def public_site(slug: str, db: Session = Depends(get_db)):
    with store_op(db, "carregar site"):
        site = storage.get_site_by_slug(db, slug)
        if not site or not site.is_active:
            raise HTTPException(status_code=404, detail="Site não encontrado")
        products = storage.get_products_by_site(db, site.id)
    return {"site": site, "products": products}


@app.post("/api/public/sites/{slug}/view")
def public_track_view(slug: str, db: Session = Depends(get_db)):
    with store_op(db, "registrar visualização"):
        site = storage.get_site_by_slug(db, slug)
        if not site:
            raise HTTPException(status_code=404, detail="Site não encontrado")
        storage.increment_analytics(db, site.id, _today(), views=1)
    return {"message": "Visualização registrada"}


@app.post("/api/sites/{site_id}/track-view")
def track_view(site_id: str, db: Session = Depends(get_db)):
    with store_op(db, "registrar visualização"):
        if not storage.get_site(db, site_id):
            raise HTTPException(status_code=404, detail="Site não encontrado")
        storage.increment_analytics(db, site_id, _today(), views=1)
    return {"success": True}


@app.get("/api/public/sites/{slug}/pix", response_model=PixOut)
def public_pix_code(
    slug: str,
    amount: Optional[Decimal] = Query(None, ge=0, le=MAX_AMOUNT),
    db: Session = Depends(get_db),
):
    with store_op(db, "gerar código PIX"):
        site = storage.get_site_by_slug(db, slug)
    if not site or not site.is_active or not site.pix_key:
        raise HTTPException(status_code=404, detail="PIX não configurado para este site")
    try:
        code = build_pix_code(
            site.pix_key,
            site.name,
            amount=amount,
            key_type=site.pix_key_type,
            city=(site.config or {}).get("city"),
        )
    except (ValueError, ArithmeticError) as e:
        logger.warning("PIX inválido para o site %s: %s", site.id, e)
        raise HTTPException(status_code=400, detail="Não foi possível gerar o código PIX com estes dados")
    return {"code": code, "amount": amount}


# -----------------------------------------------------------------------------
# Sites (dono)
# -----------------------------------------------------------------------------
@app.get("/api/sites", response_model=List[SiteOut])
def list_sites(current: User = Depends(get_current_user), db: Session = Depends(get_db)):
    with store_op(db, "listar sites"):
        return storage.get_sites_by_user(db, current.id)


@app.get("/api/sites/{site_id}", response_model=SiteOut)
def get_site(site_id: str, current: User = Depends(get_current_user), db: Session = Depends(get_db)):
    with store_op(db, "carregar site"):
        return _owned_site_or_404(db, site_id, current)


@app.post("/api/sites", response_model=SiteOut, status_code=201)
def create_site(payload: SiteIn, current: User = Depends(get_current_user), db: Session = Depends(get_db)):
    with store_op(db, "criar site"):
        if not storage.get_template(db, payload.template_id):
            raise HTTPException(status_code=400, detail="Template inválido")
        if storage.get_site_by_slug(db, payload.slug):
            raise HTTPException(status_code=409, detail="Slug já está em uso")
        try:
            return storage.create_site(db, current.id, payload.model_dump(mode="json"))
        except IntegrityError:
            # corrida entre a checagem e o insert
            db.rollback()
            raise HTTPException(status_code=409, detail="Slug já está em uso")


@app.put("/api/sites/{site_id}", response_model=SiteOut)
def update_site(
    site_id: str,
    payload: SiteUpdate,
    current: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    with store_op(db, "atualizar site"):
        site = _owned_site_or_404(db, site_id, current)
        data = payload.model_dump(mode="json", exclude_unset=True)
        if "template_id" in data and not storage.get_template(db, data["template_id"]):
            raise HTTPException(status_code=400, detail="Template inválido")
        if data.get("slug") and data["slug"] != site.slug:
            if storage.get_site_by_slug(db, data["slug"]):
                raise HTTPException(status_code=409, detail="Slug já está em uso")
        try:
            return storage.update_site(db, site, data)
        except IntegrityError:
            db.rollback()
            raise HTTPException(status_code=409, detail="Slug já está em uso")


@app.delete("/api/sites/{site_id}")
def delete_site(site_id: str, current: User = Depends(get_current_user), db: Session = Depends(get_db)):
    with store_op(db, "excluir site"):
        site = _owned_site_or_404(db, site_id, current)
        storage.delete_site(db, site)
    return {"message": "Site excluído com sucesso"}


@app.post("/api/sites/{site_id}/deploy", response_model=DeployOut)
def deploy_site(site_id: str, current: User = Depends(get_current_user), db: Session = Depends(get_db)):
    # publicação simulada: só grava a URL no padrão do provedor
    with store_op(db, "publicar site"):
        site = _owned_site_or_404(db, site_id, current)
        url = f"https://{site.slug}.netlify.app"
        storage.update_site(db, site, {"netlify_url": url, "netlify_id": f"site-{int(time.time() * 1000)}"})
    return {"success": True, "url": url, "message": "Site publicado com sucesso!"}


# -----------------------------------------------------------------------------
# Produtos
# -----------------------------------------------------------------------------
@app.get("/api/sites/{site_id}/products", response_model=List[ProductOut])
def list_products(site_id: str, db: Session = Depends(get_db)):
    with store_op(db, "listar produtos"):
        return storage.get_products_by_site(db, site_id)


@app.post("/api/sites/{site_id}/products", response_model=ProductOut, status_code=201)
def create_product(
    site_id: str,
    payload: ProductIn,
    current: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    with store_op(db, "criar produto"):
        _owned_site_or_404(db, site_id, current)
        return storage.create_product(db, site_id, payload.model_dump())


def _owned_product_or_404(db: Session, product_id: int, current: User):
    pr = storage.get_product(db, product_id)
    if not pr or not storage.get_owned_site(db, pr.site_id, current.id):
        raise HTTPException(status_code=404, detail="Produto não encontrado")
    return pr


@app.put("/api/products/{product_id}", response_model=ProductOut)
def update_product(
    product_id: int,
    payload: ProductUpdate,
    current: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    with store_op(db, "atualizar produto"):
        pr = _owned_product_or_404(db, product_id, current)
        return storage.update_product(db, pr, payload.model_dump(exclude_unset=True))


@app.delete("/api/products/{product_id}")
def delete_product(product_id: int, current: User = Depends(get_current_user), db: Session = Depends(get_db)):
    with store_op(db, "excluir produto"):
        pr = _owned_product_or_404(db, product_id, current)
        storage.delete_product(db, pr)
    return {"ok": True}


# -----------------------------------------------------------------------------
# Pedidos
# -----------------------------------------------------------------------------
@app.get("/api/sites/{site_id}/orders", response_model=List[OrderOut])
def list_orders(
    site_id: str,
    status: Optional[OrderStatus] = Query(None),
    current: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    with store_op(db, "listar pedidos"):
        _owned_site_or_404(db, site_id, current)
        return storage.get_orders_by_site(db, site_id, status=status.value if status else None)


@app.post("/api/sites/{site_id}/orders", response_model=OrderCreatedOut, status_code=201)
def create_order(site_id: str, payload: OrderIn, db: Session = Depends(get_db)):
    with store_op(db, "criar pedido"):
        site = storage.get_site(db, site_id)
        if not site or not site.is_active:
            raise HTTPException(status_code=404, detail="Site não encontrado")
        total = sum((i.price * i.quantity for i in payload.items), Decimal("0")).quantize(Decimal("0.01"))
        if payload.total_amount is not None and abs(payload.total_amount - total) > ORDER_TOTAL_TOLERANCE:
            raise HTTPException(status_code=400, detail="Total do pedido não confere com os itens")
        data = payload.model_dump(mode="json", exclude={"items", "total_amount"})
        data["items"] = [i.model_dump(mode="json", exclude_none=True) for i in payload.items]
        data["total_amount"] = total
        order = storage.create_order(db, site_id, data)
        logger.info("order %s created for site %s (%s)", order.id, site_id, total)

    url = None
    if site.whatsapp_number:
        url = whatsapp_url(site.whatsapp_number, storefront_message(site, order, _zone(None)))
    return OrderCreatedOut.model_validate(order).model_copy(update={"whatsapp_url": url})


def _owned_order_or_404(db: Session, order_id: str, current: User):
    order = storage.get_order(db, order_id)
    if not order or not storage.get_owned_site(db, order.site_id, current.id):
        raise HTTPException(status_code=404, detail="Pedido não encontrado")
    return order


@app.put("/api/orders/{order_id}/status", response_model=OrderOut)
def update_order_status(
    order_id: str,
    payload: StatusChange,
    current: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    with store_op(db, "atualizar status do pedido"):
        order = _owned_order_or_404(db, order_id, current)
        return storage.update_order_status(db, order, payload.status.value)


@app.get("/api/orders/{order_id}/whatsapp", response_model=LinkOut)
def order_whatsapp_link(order_id: str, current: User = Depends(get_current_user), db: Session = Depends(get_db)):
    with store_op(db, "gerar link do WhatsApp"):
        order = _owned_order_or_404(db, order_id, current)
        site = order.site
    if not site.whatsapp_number:
        raise HTTPException(status_code=400, detail="Número do WhatsApp não configurado")
    return {"url": whatsapp_url(site.whatsapp_number, order_summary_message(order, _zone(None)))}


# -----------------------------------------------------------------------------
# Analytics
# -----------------------------------------------------------------------------
@app.get("/api/sites/{site_id}/analytics", response_model=List[AnalyticsOut])
def site_analytics(
    site_id: str,
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    current: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    start = _parse_day(start_date, "startDate")
    end = _parse_day(end_date, "endDate")
    with store_op(db, "carregar analytics"):
        _owned_site_or_404(db, site_id, current)
        return storage.get_analytics(db, site_id, start, end)


@app.get("/api/sites/{site_id}/analytics/{period}", response_model=List[AnalyticsOut])
def site_analytics_period(
    site_id: str,
    period: str,
    current: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    with store_op(db, "carregar analytics"):
        _owned_site_or_404(db, site_id, current)
        return storage.get_analytics(db, site_id, _period_start(period), _today())


@app.post("/api/sites/{site_id}/analytics", response_model=AnalyticsOut)
def upsert_analytics(
    site_id: str,
    payload: AnalyticsIn,
    current: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    with store_op(db, "atualizar analytics"):
        _owned_site_or_404(db, site_id, current)
        return storage.update_analytics(db, {"site_id": site_id, **payload.model_dump()})


@app.get("/api/sites/{site_id}/report", response_model=ReportOut)
def site_report(
    site_id: str,
    period: str = "30d",
    tz: Optional[str] = None,
    current: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    zone = _zone(tz)
    with store_op(db, "montar relatório"):
        _owned_site_or_404(db, site_id, current)
        start = _period_start(period)
        orders = storage.get_orders_by_site(db, site_id)
        rows = storage.get_analytics(db, site_id, start, _today())

    in_period = [o for o in orders if aggregation.local_time(o.created_at, zone).date() >= start]
    revenue = sum((Decimal(str(o.total_amount)) for o in in_period), Decimal("0"))
    return {
        "period": period if period in PERIOD_DAYS else "30d",
        "timezone": zone.key,
        "total_orders": len(in_period),
        "total_revenue": revenue,
        "average_order_value": aggregation.average_order_value(revenue, len(in_period)),
        "status_counts": aggregation.status_counts(in_period),
        "delivery_split": aggregation.delivery_split(in_period),
        "today": asdict(aggregation.today_totals(orders, datetime.utcnow(), zone)),
        "top_products": [asdict(s) for s in aggregation.top_products(in_period)],
        "peak_hours": [asdict(h) for h in aggregation.peak_hours(in_period, zone)],
        "analytics": asdict(aggregation.analytics_totals(rows)),
    }


@app.get("/api/health")
def health():
    return {"ok": True}


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
