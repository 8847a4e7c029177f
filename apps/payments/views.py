from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from .serializers import InitiatePaymentSerializer
from .services import PaymentService


class InitiatePaymentView(APIView):
    permission_classes = [AllowAny]
    authentication_classes = []

    def post(self, request):
        serializer = InitiatePaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        return Response(PaymentService.initiate(
            serializer.validated_data["order_id"],
            serializer.validated_data["method"],
        ))
