# accounting/serializers.py
from rest_framework import serializers


class BatchRunSerializer(serializers.Serializer):
    as_of = serializers.DateField(required=False, allow_null=True)
