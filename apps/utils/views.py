# apps/utils/views.py
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import AllowAny
from django.conf import settings


class ServerInfoView(APIView):
    permission_classes = [AllowAny]
    authentication_classes = []

    def get(self, request):
        return Response({
            "app_name": settings.PROJECT_NAME,
            "version": "1.0.0",
            "debug": settings.DEBUG,
        })


class ExpirationPolicyView(APIView):
    """
    Pickup expiration policy shown on checkout and confirmation pages.
    """
    permission_classes = [AllowAny]
    authentication_classes = []

    def get(self, request):
        perishable = settings.PERISHABLE_EXPIRY_HOURS
        non_perishable = settings.NON_PERISHABLE_EXPIRY_HOURS
        return Response({
            "expiration_policy": (
                f"{perishable}h maximum for perishable products, {non_perishable}h for "
                "non-perishable products. After that the order is cancelled and the "
                "goods go back on the shelf, without refund (expired order)."
            ),
            "perishable_expiry": perishable,
            "non_perishable_expiry": non_perishable,
            "currency": settings.STOREFRONT_CURRENCY,
        })
