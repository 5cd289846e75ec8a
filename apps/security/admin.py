from django.contrib import admin

from .models import AuditLog, LogEntry


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ("timestamp", "action_code", "target", "user", "client_ip")
    list_filter = ("action_code",)
    search_fields = ("target", "endpoint", "user__username")
    readonly_fields = [field.name for field in AuditLog._meta.fields]


@admin.register(LogEntry)
class LogEntryAdmin(admin.ModelAdmin):
    list_display = ("timestamp", "level", "logger_name", "certificate_number", "message")
    list_filter = ("level", "logger_name")
    search_fields = ("certificate_number", "message")
