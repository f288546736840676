"""Admin registrations for listings."""

from __future__ import annotations

from django.contrib import admin

from .models import Listing


@admin.register(Listing)
class ListingAdmin(admin.ModelAdmin):
    list_display = ("title", "category", "city", "status", "base_price", "max_guests", "owner", "created_at")
    list_filter = ("category", "status", "city")
    search_fields = ("title", "city", "owner__email")
    readonly_fields = ("slug", "published_at", "created_at", "updated_at")
