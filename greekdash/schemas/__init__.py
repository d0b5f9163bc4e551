"""
Module des schémas Pydantic pour GreekDash.
Définit les modèles de validation pour les requêtes et réponses API.
"""

from .user import (
    RegisterRequest,
    RegisterResponse,
    UserLogin,
    RefreshRequest,
    Token,
    MembershipSummary,
    UserResponse,
    MeResponse,
    PasswordChange,
    ForgotPasswordRequest,
    PasswordResetConfirm,
    PhoneSettingsUpdate,
    PhoneSettingsResponse,
    MessageResponse,
)
from .chapter import (
    SlugAvailability,
    ChapterResponse,
    ChapterSettingsUpdate,
    ChapterPublicResponse,
    JoinCodeResponse,
    JoinChapterRequest,
    JoinChapterResponse,
    ContactMessageCreate,
    ContactMessageResponse,
    GalleryImageCreate,
    GalleryImageResponse,
)
from .member import (
    MemberResponse,
    MemberListResponse,
    ProfileResponse,
    ProfileUpdate,
    RoleUpdate,
)
from .invite import (
    InviteCreate,
    InviteResponse,
    InviteListResponse,
    InviteValidation,
    InviteAccept,
    InviteAcceptResponse,
)
from .event import (
    EventCreate,
    EventUpdate,
    EventResponse,
    EventListResponse,
    RSVPRequest,
    RSVPResponse,
    RSVPListResponse,
)
from .finance import (
    BudgetCreate,
    BudgetUpdate,
    BudgetResponse,
    ExpenseCreate,
    ExpenseUpdate,
    ExpenseResponse,
    DuesCreate,
    BulkDuesCreate,
    DuesUpdate,
    DuesResponse,
    BulkDuesResponse,
    CheckoutResponse,
    TransactionCreate,
    TransactionResponse,
    TransactionListResponse,
    FinanceSummary,
)
from .billing import (
    BillingOverview,
    PlanChangeRequest,
    PlanChangeResponse,
    SubscriptionCheckoutRequest,
    BillingUrlResponse,
    WebhookAck,
)
from .broadcast import (
    BroadcastRequest,
    BroadcastResult,
    MessageLogResponse,
    MessageLogListResponse,
)
from .audit import AuditLogResponse, AuditLogListResponse

__all__ = [
    # User
    "RegisterRequest",
    "RegisterResponse",
    "UserLogin",
    "RefreshRequest",
    "Token",
    "MembershipSummary",
    "UserResponse",
    "MeResponse",
    "PasswordChange",
    "ForgotPasswordRequest",
    "PasswordResetConfirm",
    "PhoneSettingsUpdate",
    "PhoneSettingsResponse",
    "MessageResponse",
    # Chapter
    "SlugAvailability",
    "ChapterResponse",
    "ChapterSettingsUpdate",
    "ChapterPublicResponse",
    "JoinCodeResponse",
    "JoinChapterRequest",
    "JoinChapterResponse",
    "ContactMessageCreate",
    "ContactMessageResponse",
    "GalleryImageCreate",
    "GalleryImageResponse",
    # Member
    "MemberResponse",
    "MemberListResponse",
    "ProfileResponse",
    "ProfileUpdate",
    "RoleUpdate",
    # Invite
    "InviteCreate",
    "InviteResponse",
    "InviteListResponse",
    "InviteValidation",
    "InviteAccept",
    "InviteAcceptResponse",
    # Event
    "EventCreate",
    "EventUpdate",
    "EventResponse",
    "EventListResponse",
    "RSVPRequest",
    "RSVPResponse",
    "RSVPListResponse",
    # Finance
    "BudgetCreate",
    "BudgetUpdate",
    "BudgetResponse",
    "ExpenseCreate",
    "ExpenseUpdate",
    "ExpenseResponse",
    "DuesCreate",
    "BulkDuesCreate",
    "DuesUpdate",
    "DuesResponse",
    "BulkDuesResponse",
    "CheckoutResponse",
    "TransactionCreate",
    "TransactionResponse",
    "TransactionListResponse",
    "FinanceSummary",
    # Billing
    "BillingOverview",
    "PlanChangeRequest",
    "PlanChangeResponse",
    "SubscriptionCheckoutRequest",
    "BillingUrlResponse",
    "WebhookAck",
    # Broadcast
    "BroadcastRequest",
    "BroadcastResult",
    "MessageLogResponse",
    "MessageLogListResponse",
    # Audit
    "AuditLogResponse",
    "AuditLogListResponse",
]
