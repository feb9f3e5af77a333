import os
import time
from dotenv import load_dotenv

load_dotenv()

class Config:
    os.environ['TZ'] = os.getenv('TZ', 'Asia/Dhaka')
    try:
        time.tzset()
    except AttributeError:
        pass

    SECRET_KEY = os.getenv('SECRET_KEY')
    if not SECRET_KEY:
        raise ValueError("SECRET_KEY must be set in the environment or .env file.")

    SQLALCHEMY_DATABASE_URI = os.getenv('DATABASE_URL')
    if not SQLALCHEMY_DATABASE_URI:
        user = os.getenv('POSTGRES_USER', 'postgres')
        pw = os.getenv('POSTGRES_PASSWORD', 'password')
        host = os.getenv('POSTGRES_HOST', 'db')
        port = os.getenv('POSTGRES_PORT', '5432')
        db_name = os.getenv('POSTGRES_DB', 'unityshop')
        SQLALCHEMY_DATABASE_URI = f"postgresql://{user}:{pw}@{host}:{port}/{db_name}"

    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Every store call is bounded: pool checkout, connect and statement time.
    STORE_TIMEOUT_MS = int(os.getenv('STORE_TIMEOUT_MS', '5000'))
    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_size': 10,
        'max_overflow': 20,
        'pool_timeout': 30,
        'pool_recycle': 1800,
        'pool_pre_ping': True,
        'connect_args': {
            'connect_timeout': 10,
            'options': f'-c statement_timeout={STORE_TIMEOUT_MS}'
        }
    }

    SHOP_NAME = os.getenv('SHOP_NAME', 'Unity Collection')
    WHATSAPP_NUMBER = os.getenv('WHATSAPP_NUMBER', '8801880545357')
    ORDER_ID_PREFIX = os.getenv('ORDER_ID_PREFIX', 'UC')
    MEMBER_CODE_PREFIX = os.getenv('MEMBER_CODE_PREFIX', 'UCM')

    CELERY_BROKER_URL = os.getenv('CELERY_BROKER_URL', 'redis://redis:6379/0')
    CELERY = {
        'broker_url': CELERY_BROKER_URL,
        'result_backend': os.getenv('CELERY_RESULT_BACKEND', CELERY_BROKER_URL),
        'broker_connection_retry_on_startup': True,
        'worker_max_tasks_per_child': 50,
        'task_always_eager': os.getenv('CELERY_ALWAYS_EAGER', '0') == '1',
        'task_eager_propagates': True,
    }

    CACHE_TYPE = 'RedisCache'
    CACHE_REDIS_URL = CELERY_BROKER_URL
    CACHE_DEFAULT_TIMEOUT = 300
