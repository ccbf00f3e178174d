"""
Live-room event names
"""

# Invites (personal room of the invitee / the admin)
INVITE_RECEIVED = "invite:received"
INVITE_ACCEPTED = "invite:accepted"
INVITE_DECLINED = "invite:declined"
INVITE_CANCELLED = "invite:cancelled"

# Members
MEMBER_JOINED = "member:joined"
MEMBER_LEFT = "member:left"
MEMBER_REMOVED = "member:removed"
MEMBER_ROLE_CHANGED = "member:role-changed"

# Records
TRANSACTION_ADDED = "transaction:added"
TRANSACTION_UPDATED = "transaction:updated"
TRANSACTION_DELETED = "transaction:deleted"

GOAL_ADDED = "goal:added"
GOAL_UPDATED = "goal:updated"
GOAL_DELETED = "goal:deleted"
GOAL_MILESTONE = "goal:milestone"

SUBSCRIPTION_ADDED = "subscription:added"
SUBSCRIPTION_UPDATED = "subscription:updated"
SUBSCRIPTION_DELETED = "subscription:deleted"

# Account
JOINT_ACCOUNT_UPDATED = "joint-account:updated"
JOINT_ACCOUNT_DELETED = "joint-account:deleted"

# Chat
CHAT_MESSAGE = "chat:message"
CHAT_MESSAGE_DELETED = "chat:message-deleted"
CHAT_CLEARED = "chat:cleared"
SPLIT_REQUEST_UPDATED = "split-request:updated"

# Notification types (data["type"] of a push / persisted notification)
NOTIFY_INVITE = "joint_account_invite"
NOTIFY_INVITE_RESPONSE = "invite_response"
NOTIFY_MEMBER = "member_update"
NOTIFY_TRANSACTION = "transaction"
NOTIFY_GOAL = "goal"
NOTIFY_GOAL_MILESTONE = "goal_milestone"
NOTIFY_SUBSCRIPTION = "subscription"
NOTIFY_ACCOUNT = "joint_account"
NOTIFY_CHAT = "chat_message"
NOTIFY_SPLIT_REQUEST = "split_request"
NOTIFY_TEST = "test"
