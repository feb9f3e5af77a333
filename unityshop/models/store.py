from . import db
from datetime import datetime

class Setting(db.Model):
    """Generic key -> JSON text rows (see services.settings_service)."""
    __tablename__ = 'settings'
    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(100), nullable=False, unique=True, index=True)
    value = db.Column(db.Text, nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow)

class Banner(db.Model):
    """Home page hero slides."""
    __tablename__ = 'banners'
    id = db.Column(db.Integer, primary_key=True)
    image_url = db.Column(db.String(500), nullable=False)
    title = db.Column(db.String(200), nullable=True)
    subtitle = db.Column(db.String(300), nullable=True)
    link = db.Column(db.String(500), nullable=True)
    overlay_type = db.Column(db.String(10), nullable=False, default='green')
    display_order = db.Column(db.Integer, nullable=False, default=0, index=True)
    is_active = db.Column(db.Boolean, default=True, nullable=False, index=True)
    created_at = db.Column(db.DateTime(timezone=True), default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'image_url': self.image_url,
            'title': self.title,
            'subtitle': self.subtitle,
            'link': self.link,
            'overlay_type': self.overlay_type,
            'display_order': self.display_order,
            'is_active': self.is_active,
        }

class Notice(db.Model):
    """The scrolling notice bar. A single row is kept."""
    __tablename__ = 'notice_settings'
    id = db.Column(db.Integer, primary_key=True)
    text = db.Column(db.String(500), nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self):
        return {'id': self.id, 'text': self.text, 'is_active': self.is_active}
