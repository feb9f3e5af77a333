import io
import traceback
import pandas as pd
from datetime import datetime
from sqlalchemy.orm import selectinload

from unityshop.extensions import db
from unityshop.models import Order
from unityshop.constants import DeliveryArea

ORDER_COLUMNS = [
    'order_id', 'status', 'created_at', 'customer_name', 'phone', 'address', 'delivery_area',
    'product', 'size', 'quantity', 'price', 'line_total',
    'subtotal', 'delivery_charge', 'discount_amount', 'total', 'coupon_code', 'referral_code',
]


def export_orders_excel(status=None):
    """One row per order line; order-level amounts repeat on each of its lines."""
    try:
        query = db.session.query(Order).options(selectinload(Order.items))
        if status and status != 'all':
            query = query.filter(Order.status == status)
        orders = query.order_by(Order.created_at.desc(), Order.id.desc()).all()

        data = []
        for o in orders:
            base = {
                'order_id': o.order_id,
                'status': o.status,
                'created_at': o.created_at.strftime('%Y-%m-%d %H:%M:%S') if o.created_at else '',
                'customer_name': o.customer_name,
                'phone': o.phone,
                'address': o.address,
                'delivery_area': DeliveryArea.LABELS.get(o.delivery_area, o.delivery_area),
                'subtotal': o.subtotal,
                'delivery_charge': o.delivery_charge,
                'discount_amount': o.discount_amount,
                'total': o.total,
                'coupon_code': o.coupon_code or '',
                'referral_code': o.referral_code or '',
            }
            for item in o.items:
                data.append({
                    **base,
                    'product': item.name,
                    'size': item.size or '',
                    'quantity': item.quantity,
                    'price': item.price,
                    'line_total': item.line_total,
                })

        df = pd.DataFrame(data, columns=ORDER_COLUMNS)
        output = io.BytesIO()
        with pd.ExcelWriter(output, engine='openpyxl') as writer:
            df.to_excel(writer, index=False, sheet_name='Orders')
        output.seek(0)

        suffix = f"_{status}" if status and status != 'all' else ''
        filename = f"orders{suffix}_{datetime.now().strftime('%Y%m%d_%H%M')}.xlsx"
        return output, filename, None
    except Exception as e:
        print(f"Export Orders Error: {e}")
        traceback.print_exc()
        return None, None, str(e)
