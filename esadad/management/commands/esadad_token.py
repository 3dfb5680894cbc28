from django.core.management.base import BaseCommand, CommandError

from esadad.exceptions import GatewayError
from esadad.tasks import refresh_token


class Command(BaseCommand):
    help = "Fetch an e-SADAD token into the cache (reuses a cached one unless --force)."

    def add_arguments(self, parser):
        parser.add_argument("--force", action="store_true", help="Ignore any cached token")
        parser.add_argument("--sync", action="store_true")  # bypass Celery

    def handle(self, *args, **opts):
        if not opts["sync"]:
            try:
                refresh_token.delay(force=opts["force"])
                self.stdout.write(self.style.SUCCESS("Token refresh task queued"))
                return
            except Exception:
                self.stdout.write("Celery not running, running synchronously")

        try:
            result = refresh_token(force=opts["force"])
        except GatewayError as e:
            raise CommandError(f"Gateway unreachable: {e}") from e
        if not result["ok"]:
            raise CommandError(f"Authentication failed with error code {result['error_code']}")
        source = "cache" if result["from_cache"] else "gateway"
        self.stdout.write(
            self.style.SUCCESS(f"Token ready from {source}, expires {result['expiry_date']}")
        )
