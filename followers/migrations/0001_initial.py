import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Follow',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('followed', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='followers', to=settings.AUTH_USER_MODEL)),
                ('follower', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='following', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'indexes': [
                    models.Index(fields=['follower'], name='follow_follower_idx'),
                    models.Index(fields=['followed'], name='follow_followed_idx'),
                    models.Index(fields=['created_at'], name='follow_created_at_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(fields=('follower', 'followed'), name='unique_follow'),
                    models.CheckConstraint(condition=models.Q(('follower', models.F('followed')), _negated=True), name='follow_no_self_loop'),
                ],
            },
        ),
    ]
