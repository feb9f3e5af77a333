import traceback
from unityshop.extensions import celery_app
from unityshop.services.membership_service import MembershipService


@celery_app.task(bind=True)
def task_refresh_membership(self, phone):
    """Recompute membership totals for one customer phone."""
    with self.app.flask_app.app_context():
        try:
            result = MembershipService.refresh_membership(phone)
            if result.get('status') != 'success':
                return {'status': 'error', 'message': result.get('message')}
            return {'status': 'completed', 'result': result}
        except Exception as e:
            traceback.print_exc()
            return {'status': 'error', 'message': str(e)}
