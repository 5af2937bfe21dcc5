"""Backend and delivery implementations for the notification service."""

from .expo_push import ExpoPushNotificationSink
from .supabase import SupabaseDataProvider, SupabaseSettingsProvider

__all__ = ["ExpoPushNotificationSink", "SupabaseDataProvider", "SupabaseSettingsProvider"]
