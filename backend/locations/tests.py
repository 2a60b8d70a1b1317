"""
Test suite for Locations module
Tests: locations, regions, teams and team membership
"""
from django.test import TestCase
from rest_framework import status

from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.locations.models import Location, Team, team_for_location


class LocationAPITests(TestCase):
    """Test location endpoints"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(TestDataFactory.create_admin())

    def test_create_location(self):
        response = self.client.post('/api/v1/locations/', {'name': 'Ikeja Depot', 'address': '1 Allen Ave'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(Location.objects.filter(name='Ikeja Depot').exists())

    def test_inactive_locations_hidden_by_default(self):
        TestDataFactory.create_location(name='Active Depot')
        inactive = TestDataFactory.create_location(name='Closed Depot')
        inactive.is_active = False
        inactive.save()

        names = [loc['name'] for loc in self.client.get('/api/v1/locations/').data]
        self.assertIn('Active Depot', names)
        self.assertNotIn('Closed Depot', names)

        names = [loc['name'] for loc in self.client.get('/api/v1/locations/?include_inactive=true').data]
        self.assertIn('Closed Depot', names)

    def test_cannot_delete_location_with_customers(self):
        """A location that still holds customers must be deactivated instead"""
        location = TestDataFactory.create_location()
        TestDataFactory.create_customer(location=location)
        response = self.client.delete(f'/api/v1/locations/{location.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertTrue(Location.objects.filter(pk=location.pk).exists())

    def test_delete_empty_location(self):
        location = TestDataFactory.create_location()
        response = self.client.delete(f'/api/v1/locations/{location.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)

    def test_view_permission_required(self):
        client = AuthenticatedAPIClient()
        client.authenticate_user(TestDataFactory.create_user(permissions=['customers:view']))
        self.assertEqual(client.get('/api/v1/locations/').status_code, status.HTTP_403_FORBIDDEN)


class RegionAPITests(TestCase):

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(TestDataFactory.create_admin())

    def test_region_cannot_be_its_own_parent(self):
        region = TestDataFactory.create_region()
        response = self.client.patch(f'/api/v1/regions/{region.id}/', {'parent': region.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_region_with_teams_is_protected(self):
        team = TestDataFactory.create_team()
        response = self.client.delete(f'/api/v1/regions/{team.region_id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class TeamAPITests(TestCase):
    """Test team endpoints"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(TestDataFactory.create_admin())
        self.region = TestDataFactory.create_region()

    def test_create_team_with_locations(self):
        lagos = TestDataFactory.create_location(name='Lagos')
        abuja = TestDataFactory.create_location(name='Abuja')
        response = self.client.post('/api/v1/teams/', {
            'name': 'South West',
            'region': self.region.id,
            'location_ids': [lagos.id, abuja.id],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(sorted(response.data['location_names']), ['Abuja', 'Lagos'])

    def test_team_requires_region(self):
        response = self.client.post('/api/v1/teams/', {'name': 'Nowhere'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('region', response.data)

    def test_update_replaces_locations(self):
        keep = TestDataFactory.create_location()
        drop = TestDataFactory.create_location()
        team = TestDataFactory.create_team(region=self.region, locations=[keep, drop])
        response = self.client.patch(f'/api/v1/teams/{team.id}/', {'location_ids': [keep.id]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(list(team.locations.values_list('id', flat=True)), [keep.id])

    def test_add_and_remove_members(self):
        team = TestDataFactory.create_team(region=self.region)
        rep = TestDataFactory.create_user(permissions=[])

        response = self.client.post(f'/api/v1/teams/{team.id}/members/', {'user_ids': [rep.id]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        rep.refresh_from_db()
        self.assertEqual(rep.team_id, team.id)

        response = self.client.delete(f'/api/v1/teams/{team.id}/members/', {'user_ids': [rep.id]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        rep.refresh_from_db()
        self.assertIsNone(rep.team_id)

    def test_invalid_member_ids(self):
        team = TestDataFactory.create_team(region=self.region)
        response = self.client.post(f'/api/v1/teams/{team.id}/members/', {'user_ids': [999999]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_cannot_delete_team_with_members(self):
        team = TestDataFactory.create_team(region=self.region)
        TestDataFactory.create_user(permissions=[], team=team)
        response = self.client.delete(f'/api/v1/teams/{team.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertTrue(Team.objects.filter(pk=team.pk).exists())


class TeamForLocationTests(TestCase):

    def test_first_assigned_team_serves_location(self):
        location = TestDataFactory.create_location()
        first = TestDataFactory.create_team(locations=[location])
        TestDataFactory.create_team(locations=[location])
        self.assertEqual(team_for_location(location), first)
        self.assertEqual(team_for_location(location.id), first)

    def test_unassigned_location(self):
        self.assertIsNone(team_for_location(TestDataFactory.create_location()))
        self.assertIsNone(team_for_location(None))
