from paycore import create_app
from paycore.celery_app import create_celery_app


flask_app = create_app()
celery = create_celery_app(flask_app)
