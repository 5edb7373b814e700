from django.contrib import admin
from .models import Train


@admin.register(Train)
class TrainAdmin(admin.ModelAdmin):
    list_display = ['train_number', 'train_name', 'origin', 'destination', 'seats_available', 'created_at']
    list_filter = ['origin', 'destination']
    search_fields = ['train_number', 'train_name', 'origin', 'destination']
    ordering = ['train_number']

    def get_readonly_fields(self, request, obj=None):
        # The counter belongs to the reservation engine once the train exists
        if obj is not None:
            return ['train_number', 'seats_available', 'created_at']
        return ['created_at']
