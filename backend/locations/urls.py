from django.urls import path
from .views import (
    location_list_create, location_detail,
    region_list_create, region_detail,
    team_list_create, team_detail, team_members,
)

urlpatterns = [
    path('locations/', location_list_create, name='location-list-create'),
    path('locations/<int:pk>/', location_detail, name='location-detail'),
    path('regions/', region_list_create, name='region-list-create'),
    path('regions/<int:pk>/', region_detail, name='region-detail'),
    path('teams/', team_list_create, name='team-list-create'),
    path('teams/<int:pk>/', team_detail, name='team-detail'),
    path('teams/<int:pk>/members/', team_members, name='team-members'),
]
