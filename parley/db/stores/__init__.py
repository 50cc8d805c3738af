from parley.db.stores.base import (
    BlockStore,
    ConversationDirectory,
    MessageLog,
    SocialGraphStore,
    UserDirectory,
    UserRecord,
    canonical_pair,
)
from parley.db.stores.blocks import SqlBlockStore
from parley.db.stores.conversations import SqlConversationDirectory
from parley.db.stores.messages import SqlMessageLog
from parley.db.stores.social_graph import SqlSocialGraphStore
from parley.db.stores.users import SqlUserDirectory

__all__ = [
    "BlockStore",
    "ConversationDirectory",
    "MessageLog",
    "SocialGraphStore",
    "SqlBlockStore",
    "SqlConversationDirectory",
    "SqlMessageLog",
    "SqlSocialGraphStore",
    "SqlUserDirectory",
    "UserDirectory",
    "UserRecord",
    "canonical_pair",
]
