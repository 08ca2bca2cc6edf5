from bublr.store.base import MAX_MEMBERSHIP_TERMS, DocumentStore
from bublr.store.sql import SqlDocumentStore
