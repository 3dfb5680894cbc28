from django.urls import path

from . import views

app_name = "esadad"

urlpatterns = [
    path("payment/", views.PaymentStartView.as_view(), name="process"),
    path("otp/", views.OtpVerifyView.as_view(), name="otp"),
    path("success/", views.PaymentSuccessView.as_view(), name="success"),
    path("transactions/", views.TransactionListView.as_view(), name="transactions"),
    path("transactions/<int:pk>/", views.TransactionDetailView.as_view(), name="transaction"),
]
