from django.contrib import admin
from .models import Reservation


@admin.register(Reservation)
class ReservationAdmin(admin.ModelAdmin):
    list_display = ['id', 'user', 'train', 'berth_type', 'meals_required', 'travel_date', 'created_at']
    list_filter = ['berth_type', 'meals_required', 'travel_date']
    search_fields = ['user__username', 'train__train_name', 'train__train_number']
    ordering = ['-created_at']

    # Rows are created and removed only through the reservation engine
    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
