from drf_spectacular.utils import extend_schema
from rest_framework import serializers
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from permissions.roles import actor_from_user, can_transfer_between_warehouses, capabilities_for
from warehouses.models import Warehouse

# ---------------------------
# SERIALIZER
# ---------------------------


class MeSerializer(serializers.Serializer):
    id = serializers.UUIDField()
    email = serializers.EmailField()
    firstName = serializers.CharField()
    lastName = serializers.CharField()
    role = serializers.CharField()
    warehouseId = serializers.IntegerField(allow_null=True)
    capabilities = serializers.ListField(child=serializers.CharField())
    canTransfer = serializers.BooleanField()
    accessibleWarehouseIds = serializers.ListField(child=serializers.IntegerField())


# ---------------------------
# VIEW
# ---------------------------


class MeView(APIView):
    """
    Profile + effective inventory scope.

    The UI uses this to pre-filter warehouse pickers; the server still
    enforces the same policy on every stock request.
    """

    permission_classes = [IsAuthenticated]
    serializer_class = MeSerializer

    @extend_schema(
        responses={200: MeSerializer},
        description="Get current authenticated user profile and warehouse scope",
    )
    def get(self, request):
        user = request.user
        actor = actor_from_user(user)
        caps = sorted(capabilities_for(actor))

        if actor is None:
            accessible = []
        elif actor.is_unrestricted:
            accessible = list(
                Warehouse.objects.filter(is_active=True).values_list("id", flat=True)
            )
        else:
            accessible = [actor.warehouse_id]

        return Response(
            {
                "id": user.id,
                "email": user.email,
                "firstName": user.first_name,
                "lastName": user.last_name,
                "role": user.role,
                "warehouseId": user.warehouse_id,
                "capabilities": caps,
                "canTransfer": can_transfer_between_warehouses(actor),
                "accessibleWarehouseIds": accessible,
            }
        )
