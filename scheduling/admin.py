from django.contrib import admin

from .models import Appointment


@admin.register(Appointment)
class AppointmentAdmin(admin.ModelAdmin):
    list_display = ("confirmation_code", "item", "partner", "scheduled_date", "start_time", "end_time", "status")
    list_filter = ("status", "scheduled_date")
    search_fields = ("confirmation_code", "item__name", "customer__full_name")
    raw_id_fields = ("order", "order_line", "customer", "item")
