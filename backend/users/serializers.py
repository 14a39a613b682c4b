from django.contrib.auth import get_user_model
from rest_framework import serializers

User = get_user_model()


class ProfileSerializer(serializers.ModelSerializer):
    display_name = serializers.CharField(read_only=True)
    is_operator = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = [
            "id",
            "username",
            "email",
            "first_name",
            "last_name",
            "phone",
            "is_host",
            "avatar_url",
            "display_name",
            "is_operator",
        ]
        read_only_fields = ["id", "username", "is_host", "display_name", "is_operator"]

    def get_is_operator(self, obj) -> bool:
        return bool(obj.is_staff and obj.groups.filter(name__startswith="operator_").exists())
