from rest_framework import generics, serializers
from rest_framework.response import Response

from operator_core.api_base import OperatorAPIView, OperatorThrottleMixin
from operator_core.models import OperatorAuditEvent
from operator_core.permissions import ALL_OPERATOR_ROLES, HasOperatorRole, IsOperator


class OperatorMeView(OperatorAPIView):
    permission_classes = [IsOperator]

    def get(self, request):
        user = request.user
        roles = sorted(
            user.groups.filter(name__in=ALL_OPERATOR_ROLES).values_list("name", flat=True)
        )
        return Response(
            {
                "id": user.id,
                "email": user.email,
                "name": user.display_name(),
                "is_staff": user.is_staff,
                "roles": roles,
            }
        )


class OperatorAuditEventSerializer(serializers.ModelSerializer):
    actor_name = serializers.SerializerMethodField()

    class Meta:
        model = OperatorAuditEvent
        fields = [
            "id",
            "action",
            "entity_type",
            "entity_id",
            "reason",
            "before_json",
            "after_json",
            "meta_json",
            "actor_name",
            "created_at",
        ]
        read_only_fields = fields

    def get_actor_name(self, obj) -> str | None:
        return obj.actor.display_name() if obj.actor else None


class OperatorAuditEventListView(OperatorThrottleMixin, generics.ListAPIView):
    serializer_class = OperatorAuditEventSerializer
    permission_classes = [IsOperator, HasOperatorRole.with_roles(ALL_OPERATOR_ROLES)]
    http_method_names = ["get"]

    def get_queryset(self):
        qs = OperatorAuditEvent.objects.select_related("actor").order_by("-created_at", "-id")
        entity_type = self.request.query_params.get("entity_type")
        entity_id = self.request.query_params.get("entity_id")
        if entity_type:
            qs = qs.filter(entity_type=entity_type)
        if entity_id:
            qs = qs.filter(entity_id=str(entity_id))
        return qs
