from django.contrib import admin

from events.models import Event, GuestRegistration, MemberRegistration, Membership


class MemberRegistrationInline(admin.TabularInline):
    model = MemberRegistration
    extra = 0


class GuestRegistrationInline(admin.TabularInline):
    model = GuestRegistration
    extra = 0


@admin.register(Event)
class EventAdmin(admin.ModelAdmin):
    list_display = ["name", "location", "date", "capacity", "created_by"]
    search_fields = ["name", "location"]
    readonly_fields = ["version"]
    inlines = [MemberRegistrationInline, GuestRegistrationInline]


@admin.register(Membership)
class MembershipAdmin(admin.ModelAdmin):
    list_display = ["user", "role", "region", "campus"]
    list_filter = ["role", "region", "campus"]
