from urllib.parse import quote

from unityshop.constants import DeliveryArea
from unityshop.utils import format_money


def build_order_message(order, shop_name='Unity Collection'):
    lines = []
    for item in order.items:
        size = f" (Size: {item.size})" if item.size else ""
        lines.append(f"• {item.name}{size} x{item.quantity} - {format_money(item.line_total)}")

    area = DeliveryArea.LABELS.get(order.delivery_area, order.delivery_area)
    body = (
        f"🛍️ *New Order from {shop_name}*\n\n"
        f"📋 *Order ID:* {order.order_id}\n"
        f"👤 *Name:* {order.customer_name}\n"
        f"📞 *Phone:* {order.phone}\n"
        f"📍 *Address:* {order.address}\n"
        f"🚚 *Delivery:* {area}\n\n"
        f"🛒 *Products:*\n" + "\n".join(lines) + "\n\n"
        f"💰 *Subtotal:* {format_money(order.subtotal)}\n"
        f"🚚 *Delivery:* {format_money(order.delivery_charge)}\n"
    )
    if order.discount_amount > 0:
        body += f"🎟️ *Discount:* -{format_money(order.discount_amount)}\n"
    if order.referral_code:
        body += f"👥 *Referral:* {order.referral_code}\n"
    body += f"✅ *Total:* {format_money(order.total)}"
    return body


def whatsapp_link(number, message):
    digits = ''.join(ch for ch in str(number) if ch.isdigit())
    return f"https://wa.me/{digits}?text={quote(message)}"
