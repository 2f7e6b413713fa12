from django.contrib import admin
from .models import Friend, FriendRequest


@admin.register(FriendRequest)
class FriendRequestAdmin(admin.ModelAdmin):
    list_display = ['from_user', 'to_user', 'status', 'created_at', 'updated_at']
    list_filter = ['status', 'created_at']
    search_fields = ['from_user__profile_name', 'to_user__profile_name']
    readonly_fields = ['pair_key', 'created_at', 'updated_at']
    raw_id_fields = ['from_user', 'to_user']

    def get_queryset(self, request):
        return super().get_queryset(request).select_related('from_user', 'to_user')


@admin.register(Friend)
class FriendAdmin(admin.ModelAdmin):
    list_display = ['user', 'friend', 'created_at']
    search_fields = ['user__profile_name', 'friend__profile_name']
    raw_id_fields = ['user', 'friend']
