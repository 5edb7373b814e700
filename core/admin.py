from django.contrib import admin
from .models import User


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ['username', 'full_name', 'phone', 'is_admin', 'is_active', 'created_at']
    list_filter = ['is_admin', 'is_active']
    search_fields = ['username', 'full_name', 'national_id']
    readonly_fields = ['id', 'password', 'created_at', 'last_login']
    ordering = ['-created_at']
