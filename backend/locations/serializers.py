from rest_framework import serializers
from .models import Region, Location, Team


class RegionSerializer(serializers.ModelSerializer):
    parent_name = serializers.CharField(source='parent.name', read_only=True)

    class Meta:
        model = Region
        fields = ['id', 'name', 'parent', 'parent_name', 'created_at', 'updated_at']


class LocationSerializer(serializers.ModelSerializer):
    team_names = serializers.SerializerMethodField()

    class Meta:
        model = Location
        fields = ['id', 'name', 'description', 'address', 'is_active', 'team_names', 'created_at', 'updated_at']

    def get_team_names(self, obj):
        return [tl.team.name for tl in obj.team_locations.select_related('team').all()]


class TeamMemberSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    full_name = serializers.CharField()
    email = serializers.EmailField()
    is_active = serializers.BooleanField()


class TeamSerializer(serializers.ModelSerializer):
    region_name = serializers.CharField(source='region.name', read_only=True)
    leader_name = serializers.CharField(source='leader.display_name', read_only=True)
    location_ids = serializers.PrimaryKeyRelatedField(
        source='locations', many=True, queryset=Location.objects.all(), required=False
    )
    members = TeamMemberSerializer(many=True, read_only=True)
    location_names = serializers.SerializerMethodField()
    customer_count = serializers.IntegerField(source='customers.count', read_only=True)
    invoice_count = serializers.IntegerField(source='invoices.count', read_only=True)

    class Meta:
        model = Team
        fields = [
            'id', 'name', 'description', 'region', 'region_name', 'leader', 'leader_name',
            'location_ids', 'location_names', 'members', 'customer_count', 'invoice_count',
            'created_at', 'updated_at'
        ]
        extra_kwargs = {
            'region': {'error_messages': {'required': 'Region is required', 'null': 'Region is required'}},
            'leader': {'error_messages': {'does_not_exist': 'Invalid leader ID'}},
        }

    def get_location_names(self, obj):
        return [location.name for location in obj.locations.all()]

    def create(self, validated_data):
        locations = validated_data.pop('locations', [])
        team = Team.objects.create(**validated_data)
        for location in locations:
            team.team_locations.create(location=location)
        return team

    def update(self, instance, validated_data):
        locations = validated_data.pop('locations', None)
        for attr, value in validated_data.items():
            setattr(instance, attr, value)
        instance.save()
        if locations is not None:
            wanted = {location.pk for location in locations}
            instance.team_locations.exclude(location_id__in=wanted).delete()
            existing = set(instance.team_locations.values_list('location_id', flat=True))
            for location in locations:
                if location.pk not in existing:
                    instance.team_locations.create(location=location)
        return instance


class TeamMembershipSerializer(serializers.Serializer):
    user_ids = serializers.ListField(
        child=serializers.IntegerField(), allow_empty=False,
        error_messages={'required': 'User IDs array is required', 'empty': 'User IDs array is required'}
    )
