"""
Services module for CarHaus.

Request-scoped service classes for inquiry threads, featured placement,
subscriptions, payments and notifications, plus the process-wide
realtime connection registry.
"""

from carhaus.services.realtime import ConnectionManager, get_connection_manager
from carhaus.services.activity_log_service import ActivityLogService
from carhaus.services.notification_service import NotificationService, get_notification_service
from carhaus.services.subscription_service import (
    FREE_LIMITS,
    PLAN_DETAILS,
    UNLIMITED,
    PlanLimits,
    SubscriptionService,
    get_subscription_service,
    is_within_limit,
)
from carhaus.services.featured_service import (
    GLOBAL_FEATURED_LIMIT,
    FeaturedListingService,
    get_featured_service,
)
from carhaus.services.inquiry_service import InquiryService, InquirySide, get_inquiry_service
from carhaus.services.listing_service import ListingService, get_listing_service
from carhaus.services.payment_service import PaymentService, get_payment_service

__all__ = [
    # Realtime
    "ConnectionManager",
    "get_connection_manager",
    # Audit
    "ActivityLogService",
    # Notifications
    "NotificationService",
    "get_notification_service",
    # Subscriptions
    "FREE_LIMITS",
    "PLAN_DETAILS",
    "UNLIMITED",
    "PlanLimits",
    "SubscriptionService",
    "get_subscription_service",
    "is_within_limit",
    # Featured
    "GLOBAL_FEATURED_LIMIT",
    "FeaturedListingService",
    "get_featured_service",
    # Inquiries
    "InquiryService",
    "InquirySide",
    "get_inquiry_service",
    # Listings
    "ListingService",
    "get_listing_service",
    # Payments
    "PaymentService",
    "get_payment_service",
]
