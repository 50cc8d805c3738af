from parley.messaging.gateway import InboxEntry, MessagingGateway

__all__ = ["InboxEntry", "MessagingGateway"]
