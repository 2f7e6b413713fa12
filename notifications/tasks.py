from celery import shared_task
from .services import create_comment_notification, create_like_notification


@shared_task
def notify_subject_liked(subject_id, liker_id, subject_author_id):
    """Create a like notification asynchronously."""
    return create_like_notification(subject_id, liker_id, subject_author_id).to_dict()


@shared_task
def notify_subject_commented(subject_id, commenter_id, subject_author_id):
    """Create a comment notification asynchronously."""
    return create_comment_notification(subject_id, commenter_id, subject_author_id).to_dict()
