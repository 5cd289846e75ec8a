from django.contrib import admin

from .models import Certificate, CertificateIssuance, CertificateSequence


@admin.register(Certificate)
class CertificateAdmin(admin.ModelAdmin):
    list_display = (
        "certificate_number",
        "recipient_name",
        "course_title",
        "status",
        "serial_number",
        "minted_at",
    )
    list_filter = ("status",)
    search_fields = ("certificate_number", "recipient_name", "recipient_account_id")
    readonly_fields = [field.name for field in Certificate._meta.fields]


@admin.register(CertificateIssuance)
class CertificateIssuanceAdmin(admin.ModelAdmin):
    list_display = ("certificate_number", "user", "course", "stage", "attempts", "updated_at")
    list_filter = ("stage",)
    search_fields = ("certificate_number", "user__username")


admin.site.register(CertificateSequence)
