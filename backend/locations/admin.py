from django.contrib import admin
from .models import Region, Location, Team, TeamLocation


@admin.register(Region)
class RegionAdmin(admin.ModelAdmin):
    list_display = ['name', 'parent', 'created_at']
    search_fields = ['name']
    ordering = ['name']


@admin.register(Location)
class LocationAdmin(admin.ModelAdmin):
    list_display = ['name', 'is_active', 'created_at']
    list_filter = ['is_active', 'created_at']
    search_fields = ['name', 'description']
    ordering = ['name']


class TeamLocationInline(admin.TabularInline):
    model = TeamLocation
    extra = 0


@admin.register(Team)
class TeamAdmin(admin.ModelAdmin):
    list_display = ['name', 'region', 'leader', 'created_at']
    list_filter = ['region']
    search_fields = ['name']
    ordering = ['name']
    inlines = [TeamLocationInline]
