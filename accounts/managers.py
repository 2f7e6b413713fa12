from django.contrib.auth.base_user import BaseUserManager


class CustomUserManager(BaseUserManager):
    """Users are identified by email and shown by their unique profile name."""

    def _create_user(self, email, profile_name, password, **extra_fields):
        if not email:
            raise ValueError("The Email field must be set")
        profile_name = (profile_name or "").strip()
        if not profile_name:
            raise ValueError("The Profile Name field must be set")
        user = self.model(email=self.normalize_email(email), profile_name=profile_name, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_user(self, email, profile_name, password=None, **extra_fields):
        extra_fields.setdefault("is_staff", False)
        extra_fields.setdefault("is_superuser", False)
        return self._create_user(email, profile_name, password, **extra_fields)

    def create_superuser(self, email, profile_name, password=None, **extra_fields):
        extra_fields.setdefault("is_staff", True)
        extra_fields.setdefault("is_superuser", True)
        for flag in ("is_staff", "is_superuser"):
            if extra_fields.get(flag) is not True:
                raise ValueError(f"Superuser must have {flag}=True.")
        return self._create_user(email, profile_name, password, **extra_fields)
