from sqlalchemy import or_
from sqlalchemy.orm import joinedload

from unityshop.extensions import db
from unityshop.models import Product, Category, Banner, Notice
from unityshop.errors import store_errors


class CatalogService:
    @staticmethod
    def list_products(category_id=None, search=None, featured=False, include_inactive=False):
        query = Product.query.options(joinedload(Product.category))
        if not include_inactive:
            query = query.filter(Product.is_active.is_(True))
        if category_id:
            query = query.filter(Product.category_id == category_id)
        if featured:
            query = query.filter(Product.is_featured.is_(True))
        if search and search.strip():
            term = f"%{search.strip()}%"
            query = query.outerjoin(Category, Product.category_id == Category.id).filter(or_(
                Product.name.ilike(term),
                Product.description.ilike(term),
                Category.name.ilike(term)
            ))
        with store_errors():
            return query.order_by(Product.created_at.desc(), Product.id.desc()).all()

    @staticmethod
    def get_product(product_id, include_inactive=False):
        with store_errors():
            product = db.session.get(Product, product_id)
        if not product or (not include_inactive and not product.is_active):
            return None
        return product

    @staticmethod
    def list_categories():
        with store_errors():
            return Category.query.order_by(Category.name).all()

    @staticmethod
    def active_banners():
        with store_errors():
            return Banner.query.filter(Banner.is_active.is_(True)) \
                .order_by(Banner.display_order, Banner.id).all()

    @staticmethod
    def active_notice():
        """The notice bar text, or None when it is switched off or blank."""
        with store_errors():
            notice = Notice.query.filter(Notice.is_active.is_(True)).order_by(Notice.id).first()
        if not notice or not (notice.text or '').strip():
            return None
        return notice
