from django.db import models
from django.contrib.auth.models import AbstractBaseUser, PermissionsMixin
from .managers import CustomUserManager

class CustomUser(AbstractBaseUser, PermissionsMixin):
    """Custom user model with email as the username field."""
    email = models.EmailField(unique=True)
    profile_name = models.CharField(max_length=255, unique=True, db_index=True)
    name = models.CharField(max_length=255, blank=True)
    is_staff = models.BooleanField(default=False)
    is_active = models.BooleanField(default=True)
    date_joined = models.DateTimeField(auto_now_add=True)

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = ["profile_name"]

    objects = CustomUserManager()

    def __str__(self):
        return self.email

    @property
    def display_name(self):
        """Name shown in notification text, e.g. 'Ada (@ada)'."""
        if self.name:
            return f"{self.name} (@{self.profile_name})"
        return self.profile_name
