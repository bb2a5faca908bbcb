# blogger/services/comment_service.py

"""
Сервисный слой для комментариев.

Знает про хранилище и правила модерации, но не про HTTP:
ошибки - это AppError из blogger.utils.exceptions.
"""

import logging
from typing import Optional

from blogger.schemas import Comment, CommentCreate, User
from blogger.storage import BlogStorage
from blogger.utils.exceptions import NotFound, PermissionDeniedError, ValidationFailed

logger = logging.getLogger(__name__)


def create_comment(
    storage: BlogStorage,
    comment_in: CommentCreate,
    current_user: Optional[User],
) -> Comment:
    """
    Создать комментарий. Он всегда попадает в pending.

    - пост должен существовать, быть опубликованным и принимать комментарии;
    - ответ должен ссылаться на комментарий того же поста;
    - аноним обязан указать имя и email, у авторизованного они берутся из профиля.
    """
    post = storage.get_post(comment_in.post_id)
    if post is None or post.status != "published":
        raise NotFound("Post not found")

    if not post.is_comments_enabled:
        raise PermissionDeniedError("Comments are disabled for this post")

    if comment_in.parent_id is not None:
        parent = storage.get_comment(comment_in.parent_id)
        if parent is None or parent.post_id != post.id:
            raise ValidationFailed("Parent comment does not belong to this post")

    if current_user is not None:
        comment_in = comment_in.model_copy(update={
            "author_id": current_user.id,
            "author_name": current_user.name or current_user.username,
            "author_email": current_user.email,
        })
    else:
        if not comment_in.author_name or not comment_in.author_email:
            raise ValidationFailed("Name and email are required to comment anonymously")
        # Аноним не может выдать себя за пользователя
        comment_in = comment_in.model_copy(update={"author_id": None})

    comment = storage.create_comment(comment_in)
    logger.info("Comment %s on post %s awaits moderation", comment.id, post.id)
    return comment


def list_approved_comments(storage: BlogStorage, post_id: int) -> Optional[list[Comment]]:
    """
    Публичный список: только approved, новые сверху.
    None - поста нет или он не опубликован.
    """
    post = storage.get_post(post_id)
    if post is None or post.status != "published":
        return None
    return storage.get_comments_by_post_id(post_id)


def moderate_comment(storage: BlogStorage, comment_id: int, status: str) -> Optional[Comment]:
    """
    Сменить статус модерации. Граф переходов не ограничен:
    допустим любой из pending/approved/rejected/spam.
    """
    comment = storage.update_comment_status(comment_id, status)
    if comment is not None:
        logger.info("Comment %s marked as %s", comment_id, status)
    return comment
