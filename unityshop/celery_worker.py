from unityshop import create_app
from unityshop.extensions import celery_app

app = create_app()
# `celery -A unityshop.celery_worker worker` looks the instance up under this name
celery = celery_app
