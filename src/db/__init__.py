"""Database package: engine plumbing and ORM tables."""

from .base import Base, create_sqlalchemy_engine, get_engine, get_session_factory
from .models import ApiKeyModel, CompanyModel, JobModel, PromptTemplateModel

__all__ = [
    "Base",
    "create_sqlalchemy_engine",
    "get_engine",
    "get_session_factory",
    "ApiKeyModel",
    "CompanyModel",
    "JobModel",
    "PromptTemplateModel",
]
