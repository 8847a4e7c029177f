from django.urls import path
from .views import InitiatePaymentView

urlpatterns = [
    path('payments/initiate', InitiatePaymentView.as_view(), name='payment-initiate'),
]
