import json
from flask import current_app

from unityshop.extensions import db, cache
from unityshop.models import Setting
from unityshop.constants import SettingKey, DiscountType
from unityshop.errors import store_errors

CACHE_KEY = 'checkout_settings'


class CheckoutSettings:
    """Typed view over the key/JSON settings rows used at checkout."""

    DEFAULT_THRESHOLD = 5000
    DEFAULT_DISCOUNT_VALUE = 5
    DEFAULT_DISCOUNT_TYPE = DiscountType.PERCENTAGE

    def __init__(self, membership_threshold=None, default_discount_value=None, default_discount_type=None):
        self.membership_threshold = (
            self.DEFAULT_THRESHOLD if membership_threshold is None else int(membership_threshold)
        )
        self.default_discount_value = (
            self.DEFAULT_DISCOUNT_VALUE if default_discount_value is None else int(default_discount_value)
        )
        self.default_discount_type = default_discount_type or self.DEFAULT_DISCOUNT_TYPE

    @classmethod
    def from_rows(cls, rows):
        values = {}
        for key, raw in rows:
            try:
                values[key] = json.loads(raw) if raw else None
            except json.JSONDecodeError:
                current_app.logger.warning(f"Ignoring malformed setting '{key}': {raw!r}")

        threshold = values.get(SettingKey.MEMBERSHIP_THRESHOLD) or {}
        discount = values.get(SettingKey.DEFAULT_MEMBER_DISCOUNT) or {}
        return cls(
            membership_threshold=threshold.get('amount'),
            default_discount_value=discount.get('value'),
            default_discount_type=discount.get('type'),
        )

    def to_dict(self):
        return {
            'membership_threshold': self.membership_threshold,
            'default_discount_value': self.default_discount_value,
            'default_discount_type': self.default_discount_type,
        }


class SettingsService:
    @staticmethod
    def load_checkout_settings():
        cached = cache.get(CACHE_KEY)
        if cached is not None:
            return CheckoutSettings(**cached)

        with store_errors():
            rows = db.session.query(Setting.key, Setting.value).filter(
                Setting.key.in_([SettingKey.MEMBERSHIP_THRESHOLD, SettingKey.DEFAULT_MEMBER_DISCOUNT])
            ).all()

        settings = CheckoutSettings.from_rows(rows)
        cache.set(CACHE_KEY, settings.to_dict())
        return settings

    @staticmethod
    def save_membership_settings(threshold, discount_value, discount_type):
        if discount_type not in DiscountType.ALL:
            return {'status': 'error', 'message': f"Unknown discount type '{discount_type}'"}
        if threshold < 0 or discount_value < 0:
            return {'status': 'error', 'message': 'Threshold and discount must not be negative'}

        updates = {
            SettingKey.MEMBERSHIP_THRESHOLD: {'amount': threshold},
            SettingKey.DEFAULT_MEMBER_DISCOUNT: {'value': discount_value, 'type': discount_type},
        }
        with store_errors():
            for key, value in updates.items():
                setting = Setting.query.filter_by(key=key).first()
                if not setting:
                    setting = Setting(key=key)
                    db.session.add(setting)
                setting.value = json.dumps(value, ensure_ascii=False)
            db.session.commit()

        cache.delete(CACHE_KEY)
        current_app.logger.info(f"Membership settings updated: {updates}")
        return {'status': 'success', 'settings': SettingsService.load_checkout_settings().to_dict()}
