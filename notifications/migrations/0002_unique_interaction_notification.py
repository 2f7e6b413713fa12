from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ('notifications', '0001_initial'),
    ]

    operations = [
        migrations.AddConstraint(
            model_name='notification',
            constraint=models.UniqueConstraint(
                condition=models.Q(notification_type__in=['LIKE', 'COMMENT']),
                fields=('notification_type', 'subject_id', 'sender', 'user'),
                name='unique_interaction_notification',
            ),
        ),
    ]
