"""
Shopping cart kept between requests.

The cart is a plain ordered list of entries so it can live in the signed
session cookie. Prices and stock ceilings are the ones seen when the item was
added; checkout re-reads both from the catalog.
"""
import time

SESSION_KEY = 'cart'


def _now_ms():
    return int(time.time() * 1000)


class Cart:
    def __init__(self, items=None):
        self.items = [dict(item) for item in (items or [])]

    @classmethod
    def from_list(cls, items):
        return cls(items)

    def to_list(self):
        return [dict(item) for item in self.items]

    def find(self, item_id):
        for item in self.items:
            if item['id'] == item_id:
                return item
        return None

    def add_item(self, product, size=None, quantity=1, now_ms=None):
        """
        Put ``quantity`` of ``product`` (a catalog dict) in the cart.

        A line with the same product and size grows instead of being duplicated;
        either way the quantity never exceeds the stock ceiling. Returns the
        cart line, or None when the product has nothing in stock.
        """
        stock = int(product.get('stock_quantity') or 0)
        if stock < 1 or quantity < 1:
            return None

        for item in self.items:
            if item['product_id'] == product['id'] and item['size'] == size:
                item['quantity'] = min(item['quantity'] + quantity, item['stock_quantity'])
                return item

        item = {
            'id': f"{product['id']}-{size}-{now_ms or _now_ms()}",
            'product_id': product['id'],
            'name': product['name'],
            'price': product.get('effective_price', product.get('price')),
            'original_price': product.get('price'),
            'image_url': product.get('image_url'),
            'size': size,
            'quantity': min(quantity, stock),
            'stock_quantity': stock,
        }
        self.items.append(item)
        return item

    def update_quantity(self, item_id, quantity):
        item = self.find(item_id)
        if item is None:
            return None
        if quantity < 1:
            self.remove_item(item_id)
            return None
        item['quantity'] = min(quantity, item['stock_quantity'])
        return item

    def remove_item(self, item_id):
        before = len(self.items)
        self.items = [item for item in self.items if item['id'] != item_id]
        return len(self.items) != before

    def clear(self):
        self.items = []

    @property
    def item_count(self):
        return sum(item['quantity'] for item in self.items)

    @property
    def subtotal(self):
        return sum(item['price'] * item['quantity'] for item in self.items)

    def checkout_lines(self):
        return [
            {'product_id': item['product_id'], 'size': item['size'],
             'quantity': item['quantity'], 'name': item['name']}
            for item in self.items
        ]

    def to_dict(self):
        return {
            'items': self.to_list(),
            'item_count': self.item_count,
            'subtotal': self.subtotal,
        }
