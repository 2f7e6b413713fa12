from django.contrib import admin
from django.urls import path, include

urlpatterns = [
    path("admin/", admin.site.urls),
    path("api/followers/", include("followers.urls")),
    path("api/friends/", include("friends.urls")),
    path("api/", include("notifications.urls")),
]
