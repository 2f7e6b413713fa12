from django.contrib import admin
from .models import Notification


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ['user', 'notification_type', 'sender', 'status', 'is_read', 'created_at']
    list_filter = ['notification_type', 'status', 'is_read', 'created_at']
    search_fields = ['user__profile_name', 'sender__profile_name', 'title', 'message']
    readonly_fields = ['created_at', 'read_at']
    raw_id_fields = ['user', 'sender', 'friend_request']

    def get_queryset(self, request):
        return super().get_queryset(request).select_related('user', 'sender')
