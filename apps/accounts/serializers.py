from rest_framework import serializers
from .models import User


class UserSerializer(serializers.ModelSerializer):
    """Basic user serializer for profile display."""

    class Meta:
        model = User
        fields = [
            'id',
            'email',
            'name',
            'photo_url',
            'balance',
            'is_active',
            'is_admin',
            'created_at',
            'last_login',
        ]
        read_only_fields = fields


class ActiveUserSerializer(serializers.ModelSerializer):
    """Entry of the user directory: id, name, balance, isActive."""

    class Meta:
        model = User
        fields = ['id', 'name', 'photo_url', 'balance', 'is_active']
        read_only_fields = fields


class UserLoginSerializer(serializers.Serializer):
    """Serializer for user login."""

    email = serializers.EmailField(required=True)
    password = serializers.CharField(
        required=True,
        write_only=True,
        style={'input_type': 'password'}
    )


class ProfileUpdateSerializer(serializers.Serializer):
    """Validate a profile update. Balance and flags are not editable here."""

    name = serializers.CharField(max_length=100, required=False, allow_blank=False)
    photo_url = serializers.URLField(max_length=500, required=False, allow_blank=True)


class UserFlagsSerializer(serializers.Serializer):
    """Validate an admin change of the active/admin flags."""

    is_active = serializers.BooleanField(required=False)
    is_admin = serializers.BooleanField(required=False)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError('Provide is_active and/or is_admin')
        return attrs
