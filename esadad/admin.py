from django.contrib import admin

from .models import GatewayLog, Transaction


class GatewayLogInline(admin.TabularInline):
    model = GatewayLog
    extra = 0
    can_delete = False
    fields = ("created_at", "level", "service", "message")
    readonly_fields = fields


@admin.register(Transaction)
class TransactionAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "merchant_code",
        "customer_id",
        "invoice_id",
        "amount",
        "currency",
        "status",
        "error_code",
        "created_at",
    )
    search_fields = ("customer_id", "invoice_id", "bank_trx_id", "gateway_trx_id")
    list_filter = ("status", "payment_status", "currency")
    readonly_fields = ("request_data", "response_data", "created_at", "updated_at")
    inlines = [GatewayLogInline]

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(GatewayLog)
class GatewayLogAdmin(admin.ModelAdmin):
    list_display = ("created_at", "level", "service", "message", "transaction")
    search_fields = ("message",)
    list_filter = ("level", "service")

    def has_change_permission(self, request, obj=None):
        return False
