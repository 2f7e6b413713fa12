from django.contrib import admin
from .models import Follow


@admin.register(Follow)
class FollowAdmin(admin.ModelAdmin):
    list_display = ['id', 'follower', 'followed', 'created_at']
    list_select_related = ['follower', 'followed']
    date_hierarchy = 'created_at'
    search_fields = ['follower__email', 'follower__profile_name', 'followed__profile_name']
    raw_id_fields = ['follower', 'followed']
