# sitebuilder/whatsapp.py
"""Links wa.me com a mensagem do pedido já formatada (só saída, sem API)."""
import re
from datetime import datetime, timezone, tzinfo
from decimal import Decimal
from typing import Optional
from urllib.parse import quote

SEP = "━━━━━━━━━━━━━━━━━━━━━━"


def _brl(value) -> str:
    return f"R$ {Decimal(str(value or 0)).quantize(Decimal('0.01'))}"


def _local(dt: datetime, tz: tzinfo) -> datetime:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(tz)


def whatsapp_url(number: str, text: str) -> Optional[str]:
    digits = re.sub(r"\D", "", number or "")
    if not digits:
        return None
    return f"https://wa.me/{digits}?text={quote(text, safe='')}"


def storefront_message(site, order, tz: tzinfo = timezone.utc) -> str:
    """Mensagem que o cliente envia para a loja ao finalizar o pedido."""
    lines = []
    for idx, item in enumerate(order.items or [], start=1):
        qty = int(item.get("quantity") or 1)
        price = Decimal(str(item.get("price") or 0))
        entry = (
            f"{idx}. *{item.get('name')}*\n"
            f"   Qtd: {qty}x | Valor: {_brl(price)}\n"
            f"   Subtotal: {_brl(price * qty)}"
        )
        if item.get("observations"):
            entry += f"\n   📝 _{item['observations']}_"
        lines.append(entry)

    when = _local(order.created_at, tz)
    msg = (
        f"🏪 *{site.name.upper()}* 🏪\n{SEP}\n\n"
        f"📦 *NOVO PEDIDO #{order.id[-6:].upper()}*\n"
        f"📅 {when:%d/%m/%Y} às {when:%H:%M}\n\n"
        f"👤 *DADOS DO CLIENTE*\n"
        f"▸ Nome: {order.customer_name}\n"
        f"▸ Telefone: {order.customer_phone}\n"
        f"▸ Endereço: {order.customer_address or 'Retirada no local'}\n\n"
        f"🛒 *ITENS DO PEDIDO*\n{SEP}\n"
        + "\n\n".join(lines)
        + "\n\n"
        f"💰 *RESUMO FINANCEIRO*\n{SEP}\n"
        f"🔸 Subtotal: {_brl(order.total_amount)}\n"
        f"🔸 Taxa de entrega: A combinar\n"
        f"🔸 *TOTAL: {_brl(order.total_amount)}*\n\n"
    )
    if order.notes:
        msg += f"📝 *OBSERVAÇÕES*\n{SEP}\n_{order.notes}_\n\n"
    msg += f"💳 *FORMAS DE PAGAMENTO*\n{SEP}\n💵 Dinheiro | 💳 Cartão"
    if site.pix_key:
        msg += f"\n🔸 *PIX:* {site.pix_key}"
    msg += "\n\n✅ *Confirme o pedido para continuarmos!*\n🚚 Tempo estimado: 30-45 minutos"
    return msg


def order_summary_message(order, tz: tzinfo = timezone.utc) -> str:
    """Resumo que o lojista manda ao cliente a partir da lista de pedidos."""
    items = "\n".join(
        f"{int(i.get('quantity') or 1)}x {i.get('name')} - {_brl(i.get('price'))}"
        for i in (order.items or [])
    )
    when = _local(order.created_at, tz)
    msg = (
        f"🛍️ *Pedido #{order.id[-6:].upper()}*\n\n"
        f"👤 *Cliente:* {order.customer_name}\n"
        f"📱 *Telefone:* {order.customer_phone}\n"
        f"📍 *Entrega:* {'Delivery' if order.delivery_type == 'delivery' else 'Retirada'}\n"
    )
    if order.customer_address:
        msg += f"🏠 *Endereço:* {order.customer_address}\n"
    msg += (
        f"\n📋 *Itens:*\n{items}\n\n"
        f"💰 *Total:* {_brl(order.total_amount)}\n"
        f"🕐 *Pedido feito em:* {when:%d/%m/%Y} às {when:%H:%M}\n"
    )
    if order.notes:
        msg += f"\n📝 *Observações:* {order.notes}"
    return msg
