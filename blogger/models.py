# blogger/models.py

"""
Таблицы для хранилища в БД (STORAGE_BACKEND=database).

Ссылки author_id / parent_id - слабые: внешних ключей нет, висячие
ссылки допустимы, каскады делает само хранилище.
"""

from sqlalchemy import JSON, Boolean, Column, DateTime, Integer, String, Text
from sqlalchemy.orm import declarative_base

Base = declarative_base()

class User(Base):
    """
    Модель пользователя
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(100), unique=True, nullable=False, index=True)
    password = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(255))
    bio = Column(Text)
    avatar = Column(String(500))
    role = Column(String(20), nullable=False, default="user")
    is_active = Column(Boolean, nullable=False, default=True)

class Post(Base):
    """
    Модель публикаций
    """

    __tablename__ = "posts"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(200), nullable=False, index=True)
    slug = Column(String(200), unique=True, nullable=False, index=True)
    excerpt = Column(Text)
    content = Column(Text, nullable=False)
    featured_image = Column(String(500))
    author_id = Column(Integer, nullable=False, index=True)
    status = Column(String(20), nullable=False, default="draft", index=True)
    published_at = Column(DateTime)
    meta_title = Column(String(255))
    meta_description = Column(Text)
    is_comments_enabled = Column(Boolean, nullable=False, default=True)
    view_count = Column(Integer, nullable=False, default=0)

class Category(Base):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    slug = Column(String(100), unique=True, nullable=False, index=True)
    description = Column(Text)
    featured_image = Column(String(500))
    parent_id = Column(Integer)

class PostCategory(Base):
    """Связь пост <-> категория"""
    __tablename__ = "post_categories"

    post_id = Column(Integer, primary_key=True)
    category_id = Column(Integer, primary_key=True)

class Tag(Base):
    __tablename__ = "tags"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), unique=True, nullable=False)
    slug = Column(String(100), unique=True, nullable=False, index=True)
    description = Column(Text)

class PostTag(Base):
    """Связь пост <-> тег"""
    __tablename__ = "post_tags"

    post_id = Column(Integer, primary_key=True)
    tag_id = Column(Integer, primary_key=True)

class Comment(Base):
    """
    Модель комментария
    """

    __tablename__ = "comments"

    id = Column(Integer, primary_key=True, index=True)
    content = Column(Text, nullable=False)
    post_id = Column(Integer, nullable=False, index=True)
    author_id = Column(Integer)
    author_name = Column(String(100))
    author_email = Column(String(255))
    parent_id = Column(Integer, index=True)
    status = Column(String(20), nullable=False, default="pending", index=True)
    created_at = Column(DateTime, nullable=False)

class AdUnit(Base):
    __tablename__ = "ad_units"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    code = Column(Text, nullable=False)
    placement = Column(String(100), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)

class Setting(Base):
    __tablename__ = "settings"

    id = Column(Integer, primary_key=True, index=True)
    key = Column(String(100), unique=True, nullable=False, index=True)
    value = Column(JSON)
    group = Column(String(50), nullable=False, default="general")
