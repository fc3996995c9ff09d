# words/serializers.py
import datetime as dt

from django.utils import timezone
from rest_framework import serializers

from .models import Word
from .services import DEFAULT_SORT, SORT_ORDERS
from .store import UNKNOWN_OWNER


class AwareDateTimeField(serializers.DateTimeField):
    """Always outputs ISO in UTC; naive values are assumed to be UTC."""
    def to_representation(self, value):
        if value is None:
            return None
        if timezone.is_naive(value):
            value = timezone.make_aware(value, dt.timezone.utc)
        return super().to_representation(value.astimezone(dt.timezone.utc))


class WordListQuerySerializer(serializers.Serializer):
    """
    Query parameters for GET /api/words.
    The view maps ?from= / ?to= onto date_from / date_to (`from` is a keyword).
    """
    sort = serializers.ChoiceField(choices=list(SORT_ORDERS), required=False, default=DEFAULT_SORT)
    date_from = serializers.CharField(required=False, allow_blank=True, default="")
    date_to = serializers.CharField(required=False, allow_blank=True, default="")
    q = serializers.CharField(required=False, allow_blank=True, default="", trim_whitespace=True)
    tz = serializers.CharField(required=False, allow_blank=True, default="")


class WordSerializer(serializers.ModelSerializer):
    """
    Read-only snapshot of a Word with its owner's display label.
    Expects context["owners"]: str(user id) -> label.
    """
    user_id = serializers.SerializerMethodField()
    added_at = AwareDateTimeField(read_only=True, default_timezone=dt.timezone.utc)
    owner_name = serializers.SerializerMethodField()

    class Meta:
        model = Word
        fields = (
            "id",
            "word",
            "word_lower",
            "user_id",
            "added_at",
            "learned",
            "notes",
            "owner_name",
        )
        read_only_fields = fields

    def get_user_id(self, obj) -> str:
        return str(obj.user_id)

    def get_owner_name(self, obj) -> str:
        return self.context.get("owners", {}).get(str(obj.user_id), UNKNOWN_OWNER)
