from django.contrib.auth import get_user_model
from rest_framework import serializers, status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from .models import PushDevice

User = get_user_model()


# --- Account Serializers ---


class UserProfileSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ["id", "email", "first_name", "last_name", "timezone"]
        read_only_fields = ["id"]

    def validate_email(self, value):
        user = self.context["request"].user
        if User.objects.exclude(pk=user.pk).filter(email=value).exists():
            raise serializers.ValidationError("A user with this email already exists.")
        return value

    def validate_timezone(self, value):
        if value not in User.valid_timezones():
            raise serializers.ValidationError("Invalid timezone.")
        return value


class PushDeviceSerializer(serializers.ModelSerializer):
    class Meta:
        model = PushDevice
        fields = ["id", "token", "platform", "created_at"]
        read_only_fields = ["id", "created_at"]
        # Uniqueness is per user and handled by get_or_create in the view
        validators = []


class PushDeviceRemoveSerializer(serializers.Serializer):
    token = serializers.CharField(max_length=255)


# --- Account Views ---


class UserProfileView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        serializer = UserProfileSerializer(request.user, context={"request": request})
        return Response(serializer.data)

    def patch(self, request):
        serializer = UserProfileSerializer(
            request.user,
            data=request.data,
            partial=True,
            context={"request": request},
        )
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return Response(serializer.data)


class PushDeviceView(APIView):
    """Register or unregister the caller's push-messaging tokens.

    GET    /api/v1/account/push-devices/ - List registered devices
    POST   /api/v1/account/push-devices/ - Register a token (idempotent)
    DELETE /api/v1/account/push-devices/ - Unregister a token
    """

    permission_classes = [IsAuthenticated]

    def get(self, request):
        devices = PushDevice.objects.filter(user=request.user)
        return Response(PushDeviceSerializer(devices, many=True).data)

    def post(self, request):
        serializer = PushDeviceSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        device, created = PushDevice.objects.get_or_create(
            user=request.user,
            token=serializer.validated_data["token"],
            defaults={"platform": serializer.validated_data.get("platform", "")},
        )
        return Response(
            PushDeviceSerializer(device).data,
            status=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
        )

    def delete(self, request):
        serializer = PushDeviceRemoveSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        PushDevice.objects.filter(
            user=request.user, token=serializer.validated_data["token"]
        ).delete()
        return Response(status=status.HTTP_204_NO_CONTENT)
