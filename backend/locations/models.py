from django.conf import settings
from django.db import models


class Region(models.Model):
    """Sales region; regions may nest under a parent region"""
    name = models.CharField(max_length=200, unique=True)
    parent = models.ForeignKey('self', on_delete=models.SET_NULL, null=True, blank=True, related_name='children')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'regions'
        ordering = ['name']


class Location(models.Model):
    """Physical location holding stock (warehouse, depot, branch)"""
    name = models.CharField(max_length=200, unique=True)
    description = models.TextField(blank=True)
    address = models.TextField(blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'locations'
        ordering = ['name']


class Team(models.Model):
    """Sales team covering one or more locations"""
    name = models.CharField(max_length=200, unique=True)
    description = models.TextField(blank=True)
    region = models.ForeignKey(Region, on_delete=models.PROTECT, related_name='teams')
    leader = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='led_teams'
    )
    locations = models.ManyToManyField(Location, through='TeamLocation', related_name='teams')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'teams'
        ordering = ['name']


class TeamLocation(models.Model):
    team = models.ForeignKey(Team, on_delete=models.CASCADE, related_name='team_locations')
    location = models.ForeignKey(Location, on_delete=models.CASCADE, related_name='team_locations')
    assigned_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.team} @ {self.location}"

    class Meta:
        db_table = 'team_locations'
        unique_together = [['team', 'location']]
        ordering = ['assigned_at', 'id']


def team_for_location(location):
    """Team serving a location: the first team it was assigned to, if any"""
    if location is None:
        return None
    location_id = location.pk if isinstance(location, Location) else location
    link = TeamLocation.objects.filter(location_id=location_id).select_related('team').order_by('assigned_at', 'id').first()
    return link.team if link else None
