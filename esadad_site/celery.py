import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "esadad_site.settings")

app = Celery("esadad_site")
app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()
