from rest_framework import serializers


class InitiatePaymentSerializer(serializers.Serializer):
    order_id = serializers.CharField()
    method = serializers.CharField(max_length=20, default="card")
