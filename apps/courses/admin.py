from django.contrib import admin

from .models import Course, CourseProgress, LearnerProfile


@admin.register(Course)
class CourseAdmin(admin.ModelAdmin):
    list_display = ("title", "slug", "is_published")
    prepopulated_fields = {"slug": ("title",)}


@admin.register(LearnerProfile)
class LearnerProfileAdmin(admin.ModelAdmin):
    list_display = ("display_name", "user", "ledger_account_id")
    search_fields = ("display_name", "user__username", "ledger_account_id")


@admin.register(CourseProgress)
class CourseProgressAdmin(admin.ModelAdmin):
    list_display = ("user", "course", "progress_percentage", "updated_at")
    list_filter = ("course",)
