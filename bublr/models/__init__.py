from bublr.db.base_class import Base
from bublr.models.user import DomainStatus, User
from bublr.models.post import Post, PostSearchTerm
